"""
LLM endpoint and model configuration.
"""

# Default model sent to the local endpoint
DEFAULT_MODEL = "gpt-oss:20b-cloud"

# Ollama's non-streaming completion endpoint
DEFAULT_API_URL = "http://localhost:11434/api/generate"

# Environment variables that may override the defaults (read once by the CLI)
ENV_MODEL = "LLM_SORTER_MODEL"
ENV_API_URL = "LLM_SORTER_API_URL"

# Generation options sent with every request
GENERATION_OPTIONS = {
    "temperature": 0.0,  # Deterministic responses
    "seed": 42,  # Seed for deterministic generation
}

# Ask the endpoint to constrain its output to JSON
RESPONSE_FORMAT = "json"

# Retry policy
DEFAULT_MAX_RETRIES = 3        # Total attempts per batch
DEFAULT_BACKOFF_BASE = 1.0     # Seconds before the 2nd attempt, doubled after
DEFAULT_BACKOFF_MAX = 8.0
DEFAULT_REQUEST_TIMEOUT = 120.0  # Local models can be slow on the first call

# Concurrent requests against the local endpoint
DEFAULT_MAX_WORKERS = 2


def backoff_delay(attempt: int, base: float = DEFAULT_BACKOFF_BASE, maximum: float = DEFAULT_BACKOFF_MAX) -> float:
    """
    Delay to wait after a failed attempt.

    Args:
        attempt: The 1-based attempt number that just failed.
        base: Delay after the first failure.
        maximum: Upper bound for the delay.

    Returns:
        Seconds to sleep before the next attempt.
    """
    return min(base * (2 ** (attempt - 1)), maximum)
