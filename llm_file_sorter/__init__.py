"""
LLM File Sorter
===============

A command-line tool that sorts the loose files of a directory into category
folders, using a local LLM endpoint to classify them by filename.
"""

__version__ = "0.1.0"

from .config import SorterConfig
from .executor import apply_plan, undo_moves
from .models import FALLBACK_CATEGORY, TAXONOMY, FileEntry, MovePlan
from .scanner import scan_directory
from .utils import save_json, load_json

__all__ = [
    "SorterConfig",
    "apply_plan",
    "undo_moves",
    "FALLBACK_CATEGORY",
    "TAXONOMY",
    "FileEntry",
    "MovePlan",
    "scan_directory",
    "save_json",
    "load_json",
]
