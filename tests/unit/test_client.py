import unittest
from unittest.mock import MagicMock, patch

import requests

from llm_file_sorter.config import SorterConfig
from llm_file_sorter.llm.client import DegenerateResponseError, InferenceClient, extract_response_text
from llm_file_sorter.llm.models import backoff_delay
from llm_file_sorter.models import BatchState, ClassificationRequest


def make_response(body=None, status_code=200, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    return response


def make_request():
    return ClassificationRequest(
        batch_id="batch-0001",
        prompt="classify these",
        model="test-model",
        api_url="http://localhost:11434/api/generate",
    )


class TestInferenceClient(unittest.TestCase):
    def setUp(self):
        self.session = MagicMock()
        self.sleeps = []
        self.client = InferenceClient(SorterConfig(), session=self.session, sleep=self.sleeps.append)

    def test_success_on_first_attempt(self):
        self.session.post.return_value = make_response({"response": '{"a.pdf": "Documents"}'})

        outcome = self.client.classify(make_request())

        self.assertEqual(outcome.state, BatchState.SUCCEEDED)
        self.assertEqual(outcome.text, '{"a.pdf": "Documents"}')
        self.assertEqual(outcome.attempts, 1)
        self.assertEqual(self.sleeps, [])

        args, kwargs = self.session.post.call_args
        self.assertEqual(args[0], "http://localhost:11434/api/generate")
        self.assertEqual(kwargs["json"]["model"], "test-model")
        self.assertIs(kwargs["json"]["stream"], False)
        self.assertEqual(kwargs["timeout"], SorterConfig().request_timeout)

    def test_retries_transport_errors_with_backoff(self):
        self.session.post.side_effect = [
            requests.ConnectionError("connection refused"),
            requests.Timeout("read timed out"),
            make_response({"response": "{}"}),
        ]

        outcome = self.client.classify(make_request())

        self.assertEqual(outcome.state, BatchState.SUCCEEDED)
        self.assertEqual(outcome.attempts, 3)
        self.assertEqual(self.sleeps, [1.0, 2.0])

    def test_empty_response_is_retried_then_fails(self):
        self.session.post.return_value = make_response({"response": "   "})

        outcome = self.client.classify(make_request())

        self.assertEqual(outcome.state, BatchState.FAILED)
        self.assertTrue(outcome.failed)
        self.assertIsNone(outcome.text)
        self.assertEqual(outcome.attempts, 3)
        self.assertEqual(self.session.post.call_count, 3)
        self.assertIn("Empty", outcome.error)

    def test_exhausted_retries_do_not_raise(self):
        self.session.post.side_effect = requests.ConnectionError("down")

        outcome = self.client.classify(make_request())

        self.assertEqual(outcome.state, BatchState.FAILED)
        self.assertEqual(outcome.batch_id, "batch-0001")
        self.assertEqual(self.sleeps, [1.0, 2.0])

    def test_http_error_status_is_retried(self):
        self.session.post.side_effect = [
            make_response(status_code=500, text="model not loaded"),
            make_response({"response": '{"a.pdf": "Documents"}'}),
        ]

        outcome = self.client.classify(make_request())

        self.assertEqual(outcome.state, BatchState.SUCCEEDED)
        self.assertEqual(outcome.attempts, 2)

    def test_single_attempt_config(self):
        client = InferenceClient(SorterConfig(max_retries=1), session=self.session, sleep=self.sleeps.append)
        self.session.post.side_effect = requests.Timeout("slow")

        outcome = client.classify(make_request())

        self.assertEqual(outcome.state, BatchState.FAILED)
        self.assertEqual(outcome.attempts, 1)
        self.assertEqual(self.sleeps, [])

    def test_state_is_sent_while_waiting_then_final(self):
        seen = []

        def post(url, **kwargs):
            seen.append(self.client.batch_states["batch-0001"])
            return make_response({"response": "{}"})

        self.session.post.side_effect = post
        self.client.classify(make_request())

        self.assertEqual(seen, [BatchState.SENT])
        self.assertEqual(self.client.batch_states["batch-0001"], BatchState.SUCCEEDED)

    def test_state_is_failed_after_exhaustion(self):
        self.session.post.side_effect = requests.ConnectionError("down")
        self.client.classify(make_request())
        self.assertEqual(self.client.batch_states["batch-0001"], BatchState.FAILED)

    @patch("llm_file_sorter.llm.client.tqdm.write")
    def test_retry_messages_do_not_break_progress_bar(self, mock_write):
        self.session.post.side_effect = requests.ConnectionError("down")

        self.client.classify(make_request())

        messages = [c.args[0] for c in mock_write.call_args_list]
        self.assertEqual(len(messages), 4)
        self.assertTrue(messages[0].startswith("[WARN] batch-0001 attempt 1/3: Connection error"))
        self.assertTrue(messages[-1].startswith("[ERROR] batch-0001 failed after 3 attempts"))


class TestExtractResponseText(unittest.TestCase):
    def test_non_json_body(self):
        with self.assertRaises(DegenerateResponseError):
            extract_response_text(make_response(ValueError("Expecting value")))

    def test_missing_response_field(self):
        with self.assertRaises(DegenerateResponseError):
            extract_response_text(make_response({"done": True}))

    def test_returns_text(self):
        self.assertEqual(extract_response_text(make_response({"response": "[]"})), "[]")


class TestBackoff(unittest.TestCase):
    def test_doubles_and_caps(self):
        self.assertEqual([backoff_delay(n, 1.0, 8.0) for n in range(1, 6)], [1.0, 2.0, 4.0, 8.0, 8.0])


if __name__ == '__main__':
    unittest.main()
