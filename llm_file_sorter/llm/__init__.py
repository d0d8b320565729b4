"""
LLM integration module for the LLM File Sorter.

Provides:
- Local inference endpoint client
- Prompt builder for filename classification
- Model and endpoint configuration
"""

from .client import InferenceClient, DegenerateResponseError, build_payload
from .models import DEFAULT_MODEL, DEFAULT_API_URL, ENV_MODEL, ENV_API_URL
from .prompts import build_classification_prompt, build_request

__all__ = [
    "InferenceClient",
    "DegenerateResponseError",
    "build_payload",
    "DEFAULT_MODEL",
    "DEFAULT_API_URL",
    "ENV_MODEL",
    "ENV_API_URL",
    "build_classification_prompt",
    "build_request",
]
