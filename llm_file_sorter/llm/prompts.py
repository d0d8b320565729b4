"""
Prompt builder for filename classification.

The prompt only ever carries filenames, never file contents.
"""

import json

from ..models import FALLBACK_CATEGORY, Batch, ClassificationRequest


def build_classification_prompt(batch: Batch, taxonomy: tuple[str, ...]) -> str:
    """
    Build the classification prompt for one batch.

    Filenames are embedded as a JSON array with ensure_ascii=False so every
    name reaches the model exactly as it appears on disk.

    Args:
        batch: The batch to classify.
        taxonomy: Allowed category labels.

    Returns:
        Prompt string for the LLM.
    """
    filenames_json = json.dumps(batch.filenames, ensure_ascii=False, indent=2)
    categories = "\n".join(f"- {label}" for label in taxonomy)

    return f"""You are a file organization assistant. Assign each filename below to exactly one category.

## Allowed Categories
{categories}

## Rules

1. Use ONLY the categories listed above, spelled exactly as shown.
2. Classify by file type and extension first (e.g. .mp3/.flac -> Music, .jpg/.png -> Images, .py/.rs -> Code, .zip/.tar.gz -> Archives).
3. Do NOT translate Japanese, Chinese or other non-Latin filenames. Classify them by their extension, not by what the name might mean.
4. If no category fits, use "{FALLBACK_CATEGORY}".
5. Copy every filename character-for-character as the JSON key. Do not rename, shorten, or skip files.

## Filenames ({len(batch)} files)
{filenames_json}

## Output Format

Return ONLY a JSON object mapping each filename to its category, with no commentary and no code fences:

{{"song.mp3": "Music", "photo.jpg": "Images", "invoice.pdf": "Documents"}}
"""


def build_request(batch: Batch, config) -> ClassificationRequest:
    """
    Render one batch into a request for the configured endpoint.

    Args:
        batch: The batch to classify.
        config: The run's SorterConfig.

    Returns:
        An immutable ClassificationRequest.
    """
    return ClassificationRequest(
        batch_id=batch.batch_id,
        prompt=build_classification_prompt(batch, config.taxonomy),
        model=config.model,
        api_url=config.api_url,
    )
