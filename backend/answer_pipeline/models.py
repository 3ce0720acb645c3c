from django.db import models
from django.db.models import F


class SharedAnswer(models.Model):
    """A rendered answer published under a shareable id."""
    share_id = models.CharField(max_length=64, unique=True, db_index=True)
    question = models.TextField()
    response = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)
    view_count = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Shared answer {self.share_id}: {self.question[:50]}"

    def increment_views(self):
        """Atomic +1 on the view counter, then refresh the instance."""
        SharedAnswer.objects.filter(pk=self.pk).update(view_count=F('view_count') + 1)
        self.refresh_from_db(fields=['view_count'])
