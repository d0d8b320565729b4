"""
Local inference endpoint client for the LLM File Sorter.

Talks to an Ollama-style /api/generate endpoint. Transport problems are
retried with backoff and never escape: an exhausted batch comes back as
a FAILED outcome so the rest of the run carries on.
"""

import threading
import time
from typing import Callable

import requests
from tqdm import tqdm

from ..models import BatchState, ClassificationRequest, InferenceOutcome
from .models import GENERATION_OPTIONS, RESPONSE_FORMAT, backoff_delay


class DegenerateResponseError(Exception):
    """The endpoint answered, but with nothing usable."""


def build_payload(request: ClassificationRequest) -> dict:
    """Wire body for one request: model, prompt, streaming disabled."""
    return {
        "model": request.model,
        "prompt": request.prompt,
        "stream": False,
        "format": RESPONSE_FORMAT,
        "options": dict(GENERATION_OPTIONS),
    }


def extract_response_text(response: requests.Response) -> str:
    """
    Pull the generated text out of an HTTP response.

    Raises:
        DegenerateResponseError: On an error status, a non-JSON body, or an empty answer.
    """
    if response.status_code >= 400:
        body = response.text[:200] if response.text else ""
        raise DegenerateResponseError(f"HTTP {response.status_code}: {body}".strip())

    try:
        data = response.json()
    except ValueError as e:
        raise DegenerateResponseError(f"Response body is not JSON: {e}") from e

    text = data.get("response") if isinstance(data, dict) else None
    if not isinstance(text, str):
        raise DegenerateResponseError("Response has no 'response' text field")
    if not text.strip():
        raise DegenerateResponseError("Empty response text")
    return text


class InferenceClient:
    """
    Sends classification requests, one state machine per batch:
    PENDING -> SENT -> SUCCEEDED | FAILED.

    Safe to share between worker threads; the current state of every batch
    seen so far is kept in `batch_states`.
    """

    def __init__(
        self,
        config,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] | None = None,
    ):
        self.config = config
        self.session = session or requests.Session()
        self._sleep = sleep or time.sleep
        self._lock = threading.Lock()
        self.batch_states: dict[str, BatchState] = {}

    def _set_state(self, batch_id: str, state: BatchState) -> BatchState:
        with self._lock:
            self.batch_states[batch_id] = state
        return state

    def classify(self, request: ClassificationRequest) -> InferenceOutcome:
        """
        Send a request, retrying transport errors and empty answers.

        Args:
            request: The rendered batch request.

        Returns:
            SUCCEEDED outcome with the raw text, or FAILED after all attempts.
        """
        self._set_state(request.batch_id, BatchState.PENDING)
        payload = build_payload(request)
        max_attempts = self.config.max_retries
        last_error = None

        for attempt in range(1, max_attempts + 1):
            self._set_state(request.batch_id, BatchState.SENT)
            try:
                response = self.session.post(
                    request.api_url,
                    json=payload,
                    timeout=self.config.request_timeout,
                )
                text = extract_response_text(response)
                return InferenceOutcome(
                    batch_id=request.batch_id,
                    state=self._set_state(request.batch_id, BatchState.SUCCEEDED),
                    text=text,
                    attempts=attempt,
                )
            except requests.Timeout as e:
                last_error = f"Timeout: {e}"
            except requests.ConnectionError as e:
                last_error = f"Connection error: {e}"
            except requests.RequestException as e:
                last_error = f"Request error: {e}"
            except DegenerateResponseError as e:
                last_error = str(e)

            tqdm.write(f"[WARN] {request.batch_id} attempt {attempt}/{max_attempts}: {last_error[:160]}")
            if attempt < max_attempts:
                self._sleep(backoff_delay(attempt, self.config.backoff_base, self.config.backoff_max))

        tqdm.write(
            f"[ERROR] {request.batch_id} failed after {max_attempts} attempts; "
            f"its files fall back to the default category"
        )
        return InferenceOutcome(
            batch_id=request.batch_id,
            state=self._set_state(request.batch_id, BatchState.FAILED),
            text=None,
            attempts=max_attempts,
            error=last_error,
        )

    def close(self) -> None:
        self.session.close()
