from django.urls import path
from . import views

urlpatterns = [
    path('ask/', views.AskQuestionView.as_view(), name='answer_pipeline_ask'),
    path('share/', views.ShareAnswerView.as_view(), name='answer_pipeline_share'),
    path('share/<str:share_id>/', views.SharedAnswerDetailView.as_view(), name='answer_pipeline_share_detail'),
    path('health/', views.health_check, name='answer_pipeline_health'),
]
