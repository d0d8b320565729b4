"""
Planning module for the LLM File Sorter.

Provides:
- Batch planning: split scanned files into request groups
- Response reconciliation: raw model text -> complete per-batch labels
- Classification driver: bounded-concurrency dispatch and plan merge
- Move planning: category sanitizing and destination paths
"""

from .batches import plan_batches
from .classify import ClassificationRun, classify_batch, classify_batches
from .plan import plan_moves, sanitize_category
from .reconciler import parse_llm_json, reconcile

__all__ = [
    "plan_batches",
    "ClassificationRun",
    "classify_batch",
    "classify_batches",
    "plan_moves",
    "sanitize_category",
    "parse_llm_json",
    "reconcile",
]
