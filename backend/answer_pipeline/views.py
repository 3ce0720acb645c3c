"""
API views for the illustrated answer pipeline.
"""
import logging
import uuid

from django.http import JsonResponse
from django.urls import reverse
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from answer_pipeline.config import config
from answer_pipeline.errors import EmptyResultError, ModelCallError, ValidationError
from answer_pipeline.models import SharedAnswer
from answer_pipeline.pipelines.orchestrator import answer_question_json
from answer_pipeline.services.markup import sanitize_html
from answer_pipeline.serializers import (
    AskRequestSerializer,
    ShareRequestSerializer,
    SharedAnswerSerializer,
)

logger = logging.getLogger(__name__)


def _error(message: str, status_code: int) -> Response:
    return Response({'ok': False, 'error': message}, status=status_code)


def generate_share_id() -> str:
    return uuid.uuid4().hex


class AskQuestionView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        """
        POST /api/answers/ask/

        Request:
        {
            "question": "What is a perceptron?",
            "api_key": "...",          // optional while the relay is used
            "model": "gemini-2.0-flash",  // optional
            "use_relay": true          // optional
        }

        Response:
        {
            "ok": true,
            "answer": {
                "question": "...",
                "html": "... rendered answer ...",
                "markdown": "...",
                "search_terms": [...],
                "images": [...],
                "unresolved_tokens": [...],
                "events": [...]
            }
        }
        """
        serializer = AskRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'ok': False, 'error': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        logger.info(f"Answering question: '{data['question']}' (relay={data['use_relay']})")

        try:
            answer = answer_question_json(
                data['question'],
                api_key=data['api_key'] or None,
                model_name=data['model'] or None,
                use_relay=data['use_relay'],
            )
        except ValidationError as e:
            return _error(str(e), status.HTTP_400_BAD_REQUEST)
        except EmptyResultError as e:
            return _error(str(e), status.HTTP_404_NOT_FOUND)
        except ModelCallError as e:
            logger.error(f"Model call failed: {e}")
            return _error(str(e), status.HTTP_502_BAD_GATEWAY)
        except Exception as e:
            logger.error(f"Answer generation failed: {e}", exc_info=True)
            return _error(str(e), status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response({'ok': True, 'answer': answer})


class ShareAnswerView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        """
        POST /api/answers/share/
        Body: {"question": "...", "response": "<rendered html>"}
        The response markup is sanitized before it is stored.

        Returns: {"share_id": "...", "share_url": "..."}
        """
        serializer = ShareRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'ok': False, 'error': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)

        shared = SharedAnswer.objects.create(
            share_id=generate_share_id(),
            question=serializer.validated_data['question'],
            response=sanitize_html(serializer.validated_data['response']),
        )
        logger.info(f"Shared response with ID: {shared.share_id}")

        share_url = request.build_absolute_uri(
            reverse('answer_pipeline_share_detail', args=[shared.share_id])
        )
        return Response(
            {'ok': True, 'share_id': shared.share_id, 'share_url': share_url},
            status=status.HTTP_201_CREATED,
        )


class SharedAnswerDetailView(APIView):
    permission_classes = [AllowAny]

    def get(self, request, share_id: str):
        """
        GET /api/answers/share/<share_id>/

        Returns the shared answer and counts the view.
        """
        try:
            shared = SharedAnswer.objects.get(share_id=share_id)
        except SharedAnswer.DoesNotExist:
            return _error('Shared content not found or has expired.', status.HTTP_404_NOT_FOUND)

        shared.increment_views()
        return Response({'ok': True, 'shared': SharedAnswerSerializer(shared).data})


def health_check(request):
    """
    GET /api/answers/health/

    Report how the pipeline is configured.
    """
    return JsonResponse({
        'ok': True,
        'relay_configured': bool(config.gemini_relay_url),
        'server_api_key': bool(config.gemini_api_key),
        'models': {
            'terms': config.terms_model,
            'answer': config.answer_model,
        },
        'limits': {
            'search_results_per_term': config.search_results_per_term,
            'max_search_candidates': config.max_search_candidates,
            'max_image_bytes': config.max_image_bytes,
            'max_total_payload_bytes': config.max_total_payload_bytes,
            'max_processed_images': config.max_processed_images,
            'fanout_workers': config.fanout_workers,
        },
    })
