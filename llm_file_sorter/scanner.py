"""
Directory scanning.

Lists the files directly inside the target directory that still need sorting.
"""

from pathlib import Path

from .models import FileEntry


def is_excluded(name: str, taxonomy: tuple[str, ...]) -> bool:
    """
    Check if a directory entry must never be classified.

    Hidden entries are skipped, and so is anything named like a category
    folder so already-sorted output is not picked up again.
    """
    if name.startswith('.'):
        return True
    return name in taxonomy


def scan_directory(config) -> list[FileEntry]:
    """
    List the immediate, non-directory children of the target directory.

    Args:
        config: The run's SorterConfig.

    Returns:
        FileEntry objects in a stable (name-sorted) order.

    Raises:
        FileNotFoundError: If the target does not exist.
        NotADirectoryError: If the target is not a directory.
        PermissionError: If the target cannot be listed.
    """
    root = Path(config.target_dir)
    if not root.exists():
        raise FileNotFoundError(f"Target directory not found: {root}")
    if not root.is_dir():
        raise NotADirectoryError(f"Target is not a directory: {root}")

    entries: list[FileEntry] = []
    for path in sorted(root.iterdir(), key=lambda p: p.name):
        if is_excluded(path.name, config.taxonomy):
            continue

        # is_dir() follows symlinks, so links to folders are skipped too
        try:
            if path.is_dir() or not path.is_file():
                continue
        except OSError:
            continue

        entries.append(FileEntry.from_path(path))

    return entries
