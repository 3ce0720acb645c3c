from django.apps import AppConfig


class AnswerPipelineConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'answer_pipeline'
    verbose_name = 'Illustrated Answer Pipeline'
