"""
API tests for answer_pipeline/views.py

The pipeline itself is patched out; these tests cover request validation,
error mapping and the share endpoints.

Run with: python -m pytest answer_pipeline/tests/test_views.py -v
"""
from unittest.mock import patch

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from answer_pipeline.errors import (
    CredentialRequiredError,
    EmptyResultError,
    ModelCallError,
    ValidationError,
)
from answer_pipeline.models import SharedAnswer


def make_answer_dict(question="What is a perceptron?"):
    return {
        'question': question,
        'html': '<p>A perceptron is a neuron.</p>',
        'markdown': 'A perceptron is a neuron.',
        'search_terms': ['perceptron'],
        'images': [],
        'unresolved_tokens': [],
        'events': [],
    }


class AskQuestionViewTests(APITestCase):

    def setUp(self):
        self.url = reverse('answer_pipeline_ask')

    @patch('answer_pipeline.views.answer_question_json')
    def test_ask_returns_answer(self, mock_answer):
        mock_answer.return_value = make_answer_dict()

        response = self.client.post(self.url, {'question': 'What is a perceptron?'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['ok'])
        self.assertEqual(response.data['answer']['html'], '<p>A perceptron is a neuron.</p>')
        mock_answer.assert_called_once_with(
            'What is a perceptron?', api_key=None, model_name=None, use_relay=True,
        )

    @patch('answer_pipeline.views.answer_question_json')
    def test_ask_forwards_options(self, mock_answer):
        mock_answer.return_value = make_answer_dict()

        self.client.post(
            self.url,
            {'question': 'Why?', 'api_key': 'abc', 'model': 'gemini-2.0-flash', 'use_relay': False},
            format='json',
        )

        mock_answer.assert_called_once_with('Why?', api_key='abc', model_name='gemini-2.0-flash', use_relay=False)

    def test_missing_question_is_bad_request(self):
        response = self.client.post(self.url, {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['ok'])

    def test_error_mapping(self):
        cases = [
            (ValidationError("Please enter your Gemini API key"), status.HTTP_400_BAD_REQUEST),
            (EmptyResultError("No images found on Wikimedia"), status.HTTP_404_NOT_FOUND),
            (ModelCallError("Gemini API error: 500"), status.HTTP_502_BAD_GATEWAY),
            (CredentialRequiredError("API key is required"), status.HTTP_502_BAD_GATEWAY),
            (RuntimeError("unexpected"), status.HTTP_500_INTERNAL_SERVER_ERROR),
        ]
        for error, expected in cases:
            with self.subTest(error=type(error).__name__):
                with patch('answer_pipeline.views.answer_question_json', side_effect=error):
                    response = self.client.post(self.url, {'question': 'Why?'}, format='json')

                self.assertEqual(response.status_code, expected)
                self.assertEqual(response.data, {'ok': False, 'error': str(error)})


class ShareViewTests(APITestCase):

    def test_share_creates_record(self):
        response = self.client.post(
            reverse('answer_pipeline_share'),
            {'question': 'What is a cell?', 'response': '<p>A cell...</p>'},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        share_id = response.data['share_id']
        self.assertTrue(response.data['share_url'].endswith(f"/api/answers/share/{share_id}/"))
        shared = SharedAnswer.objects.get(share_id=share_id)
        self.assertEqual(shared.question, 'What is a cell?')
        self.assertEqual(shared.view_count, 0)

    def test_share_sanitizes_stored_markup(self):
        response = self.client.post(
            reverse('answer_pipeline_share'),
            {
                'question': 'Q',
                'response': '<p>Safe</p><script>alert(1)</script><img src="https://x.org/a.png" onerror="alert(2)">',
            },
            format='json',
        )

        stored = SharedAnswer.objects.get(share_id=response.data['share_id']).response
        self.assertIn('<p>Safe</p>', stored)
        self.assertNotIn('<script', stored)
        self.assertNotIn('onerror', stored)
        self.assertIn('src="https://x.org/a.png"', stored)

    def test_share_requires_fields(self):
        response = self.client.post(reverse('answer_pipeline_share'), {'question': 'x'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_detail_returns_record_and_counts_views(self):
        SharedAnswer.objects.create(share_id='abc123', question='Q', response='<p>R</p>')
        url = reverse('answer_pipeline_share_detail', args=['abc123'])

        first = self.client.get(url)
        second = self.client.get(url)

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(first.data['shared']['response'], '<p>R</p>')
        self.assertEqual(first.data['shared']['view_count'], 1)
        self.assertEqual(second.data['shared']['view_count'], 2)

    def test_unknown_share_id_is_not_found(self):
        response = self.client.get(reverse('answer_pipeline_share_detail', args=['nope']))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Shared content not found or has expired.')


class HealthViewTests(APITestCase):

    def test_health(self):
        response = self.client.get(reverse('answer_pipeline_health'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertTrue(body['ok'])
        self.assertIn('answer', body['models'])
        self.assertEqual(body['limits']['max_search_candidates'], 15)
