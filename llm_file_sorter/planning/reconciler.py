"""
Response reconciliation for the LLM File Sorter.

Turns raw model text into a ClassificationResult that covers every file of
the batch, whatever the model actually returned.
"""

import json
import re
from typing import Any

from ..models import (
    FALLBACK_CATEGORY,
    TAXONOMY,
    Batch,
    ClassificationResult,
    InferenceOutcome,
    ParseOutcome,
)

_FENCE_RE = re.compile(r'```(?:json|JSON)?\s*([\s\S]*?)```')

_FILENAME_KEYS = ("filename", "file", "name", "path")
_CATEGORY_KEYS = ("category", "label", "directory", "folder", "type")


def _strip_artifacts(text: str) -> str:
    """
    Remove code fences, surrounding commentary and stray punctuation.

    Args:
        text: Raw response text.

    Returns:
        The best guess at the JSON body.
    """
    text = text.strip()

    if "```" in text:
        fence = _FENCE_RE.search(text)
        if fence:
            text = fence.group(1).strip()
        else:
            # Opening fence without a closing one (truncated output)
            text = re.sub(r'^```(?:json|JSON)?', '', text).strip()

    starts = [i for i in (text.find('{'), text.find('[')) if i != -1]
    if starts:
        text = text[min(starts):]

    last_close = max(text.rfind('}'), text.rfind(']'))
    if last_close != -1:
        text = text[:last_close + 1]

    # Trailing commas before a closing brace or bracket
    text = re.sub(r',\s*([}\]])', r'\1', text)

    return text.strip()


def _try_recover_truncated_json(text: str) -> Any:
    """
    Attempt to recover valid JSON from a truncated response.

    This handles cases where the LLM output was cut off mid-JSON. Commas and
    brackets inside strings (e.g. filenames like "x, y.jpg") are ignored when
    looking for the last complete item.

    Args:
        text: Potentially truncated JSON text.

    Returns:
        Recovered JSON with whatever data could be salvaged.

    Raises:
        json.JSONDecodeError: If recovery fails completely.
    """
    closers = {'{': '}', '[': ']'}
    stack = []
    last_comma = None
    is_escaped = False
    in_string = False
    for i, char in enumerate(text):
        if in_string:
            if is_escaped:
                is_escaped = False
            elif char == '\\':
                is_escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char in closers:
            stack.append(char)
        elif char in '}]':
            if stack and closers[stack[-1]] == char:
                stack.pop()
        elif char == ',':
            # Everything before this comma is a complete item
            last_comma = (i, list(stack))

    # Try the text as-is first, then cut back to the last complete item,
    # then keep only the outermost container
    candidates = []
    if not in_string:
        candidates.append((text, stack))
    if last_comma is not None:
        index, still_open = last_comma
        candidates.append((text[:index], still_open))
    if text[:1] in closers:
        candidates.append((text[:1], [text[0]]))

    error = json.JSONDecodeError("Nothing to recover", text, 0)
    for body, still_open in candidates:
        try:
            return json.loads(body + "".join(closers[c] for c in reversed(still_open)))
        except json.JSONDecodeError as e:
            error = e
    raise error


def parse_llm_json(response_text: str) -> tuple[Any, ParseOutcome]:
    """
    Parse JSON from an LLM response, repairing it if needed.

    Args:
        response_text: Raw response text from the LLM.

    Returns:
        (parsed value, outcome). The value is None when the outcome is FAILED.
    """
    try:
        return json.loads(response_text.strip()), ParseOutcome.STRICT
    except json.JSONDecodeError:
        pass

    cleaned = _strip_artifacts(response_text)
    if not cleaned:
        return None, ParseOutcome.FAILED

    try:
        return json.loads(cleaned), ParseOutcome.REPAIRED
    except json.JSONDecodeError:
        pass

    if not cleaned.startswith(('{', '[')):
        return None, ParseOutcome.FAILED

    try:
        return _try_recover_truncated_json(cleaned), ParseOutcome.REPAIRED
    except json.JSONDecodeError:
        return None, ParseOutcome.FAILED


def _first_string(item: dict, keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = item.get(key)
        if isinstance(value, str):
            return value
    return None


def extract_pairs(parsed: Any) -> list[tuple[str, str]] | None:
    """
    Pull (filename, category) pairs out of the accepted response shapes.

    Accepted:
    - {"a.pdf": "Documents", ...}
    - a single wrapper key around either form, e.g. {"files": {...}}
    - [{"filename": "a.pdf", "category": "Documents"}, ...]

    Returns:
        The pairs found (possibly empty), or None if the shape is unusable.
    """
    if isinstance(parsed, dict) and len(parsed) == 1:
        (only_value,) = parsed.values()
        if isinstance(only_value, (dict, list)):
            parsed = only_value

    if isinstance(parsed, dict):
        return [(k, v) for k, v in parsed.items() if isinstance(k, str) and isinstance(v, str)]

    if isinstance(parsed, list):
        pairs = []
        for item in parsed:
            if not isinstance(item, dict):
                continue
            filename = _first_string(item, _FILENAME_KEYS)
            category = _first_string(item, _CATEGORY_KEYS)
            if filename is not None and category is not None:
                pairs.append((filename, category))
        return pairs

    return None


def normalize_category(label: str, taxonomy: tuple[str, ...] = TAXONOMY) -> str:
    """
    Map a model-supplied label onto the taxonomy.

    Matching ignores surrounding whitespace and case; anything else becomes
    the fallback label.
    """
    wanted = label.strip().casefold()
    for category in taxonomy:
        if category.casefold() == wanted:
            return category
    return FALLBACK_CATEGORY


def reconcile(
    batch: Batch,
    outcome: InferenceOutcome,
    taxonomy: tuple[str, ...] = TAXONOMY,
) -> ClassificationResult:
    """
    Resolve one batch's response into a complete classification.

    Filenames are matched by exact string equality only. Every file in the
    batch gets exactly one category; files the model skipped (or the whole
    batch, when the call or parse failed) get the fallback label.

    Args:
        batch: The batch the response belongs to.
        outcome: The InferenceClient's outcome for that batch.
        taxonomy: Allowed category labels.

    Returns:
        ClassificationResult covering every file in the batch.
    """
    pairs: list[tuple[str, str]] = []
    parse_outcome = ParseOutcome.FAILED

    if not outcome.failed:
        parsed, parse_outcome = parse_llm_json(outcome.text)
        if parse_outcome is not ParseOutcome.FAILED:
            extracted = extract_pairs(parsed)
            if extracted is None:
                parse_outcome = ParseOutcome.FAILED
            else:
                pairs = extracted

    known = set(batch.filenames)
    returned: dict[str, str] = {}
    unmatched: list[str] = []
    for filename, label in pairs:
        if filename in known:
            returned[filename] = normalize_category(label, taxonomy)
        elif filename not in unmatched:
            unmatched.append(filename)

    assignments: dict[str, str] = {}
    fallback: list[str] = []
    for name in batch.filenames:
        if name in returned:
            assignments[name] = returned[name]
        else:
            assignments[name] = FALLBACK_CATEGORY
            fallback.append(name)

    return ClassificationResult(
        batch_id=batch.batch_id,
        assignments=assignments,
        outcome=parse_outcome,
        fallback=fallback,
        unmatched=unmatched,
    )
