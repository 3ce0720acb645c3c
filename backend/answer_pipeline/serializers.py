"""DRF serializers for the answer and sharing endpoints."""
from rest_framework import serializers

from answer_pipeline.models import SharedAnswer


class AskRequestSerializer(serializers.Serializer):
    """Question submitted for an illustrated answer."""
    question = serializers.CharField(trim_whitespace=True)
    api_key = serializers.CharField(required=False, allow_blank=True, default='', trim_whitespace=True)
    model = serializers.CharField(required=False, allow_blank=True, default='')
    use_relay = serializers.BooleanField(required=False, default=True)


class ShareRequestSerializer(serializers.Serializer):
    """Rendered answer to publish."""
    question = serializers.CharField()
    response = serializers.CharField()


class SharedAnswerSerializer(serializers.ModelSerializer):
    class Meta:
        model = SharedAnswer
        fields = ['share_id', 'question', 'response', 'created_at', 'view_count']
        read_only_fields = fields
