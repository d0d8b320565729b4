"""
Move planning for the LLM File Sorter.

Turns the merged MovePlan into concrete source -> destination pairs.
"""

import re
from pathlib import Path

from ..models import FALLBACK_CATEGORY, TAXONOMY, MovePlan

# Characters that are illegal in folder names on at least one common filesystem
_ILLEGAL_CHARS_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f]')


def sanitize_category(label: str, taxonomy: tuple[str, ...] = TAXONOMY) -> str:
    """
    Turn a category label into a safe directory name.

    Args:
        label: Category label (normally already a taxonomy label).
        taxonomy: Known labels, used for canonical spelling.

    Returns:
        A directory name that is never empty, '.' or '..'.
    """
    cleaned = _ILLEGAL_CHARS_RE.sub('', label)
    cleaned = " ".join(cleaned.split())
    # Leading dots would hide the folder; Windows rejects trailing dots and spaces
    cleaned = cleaned.strip(". ")

    if not cleaned or cleaned in ('.', '..'):
        return FALLBACK_CATEGORY

    for category in taxonomy:
        if category.casefold() == cleaned.casefold():
            return category
    return cleaned.title()


def plan_moves(plan: MovePlan, root: Path, taxonomy: tuple[str, ...] = TAXONOMY) -> list[dict]:
    """
    List the moves a plan implies, in scan order.

    Args:
        plan: The merged MovePlan.
        root: Target directory.
        taxonomy: Known labels.

    Returns:
        Dicts with source, destination, category and the folder name.
    """
    moves = []
    for entry, category in sorted(plan.items(), key=lambda item: item[0].name):
        folder = sanitize_category(category, taxonomy)
        moves.append({
            "source": entry.path.absolute(),
            "destination": root / folder / entry.name,
            "category": category,
            "folder": folder,
        })
    return moves
