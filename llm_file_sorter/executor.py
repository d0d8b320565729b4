"""
Plan execution for the LLM File Sorter.

Previews or applies a MovePlan, and can replay an undo journal.
"""

import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from pathlib import Path

from tqdm import tqdm

from .models import MovePlan
from .planning.plan import plan_moves
from .utils import load_jsonl, save_jsonl_line

# Concurrent file moves
MOVE_WORKERS = 8

# How many planned moves a dry run prints
PREVIEW_LIMIT = 10

JOURNAL_PREFIX = ".llm_file_sorter_undo_"


def _move_file(src: Path, dst: Path) -> dict:
    """
    Move a single file without ever replacing an existing destination.

    The destination is first reserved with an exclusive create, then the
    source is moved over the reservation. Safe for threads.
    """
    res = {"source": str(src), "destination": str(dst), "status": "failed", "error": None}

    try:
        if not src.exists():
            res["error"] = "Source not found"
            return res

        try:
            fd = os.open(dst, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o600)
        except FileExistsError:
            res["status"] = "conflict"
            res["error"] = "Destination exists"
            return res
        os.close(fd)

        try:
            os.replace(src, dst)
        except OSError:
            # Drop the reservation so a retry starts clean
            dst.unlink(missing_ok=True)
            raise

        res["status"] = "moved"
        return res

    except OSError as e:
        res["error"] = str(e)
        return res


def _open_journal(root: Path):
    """Create a new undo journal in the target directory and write its header."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    journal = root / f"{JOURNAL_PREFIX}{timestamp}.jsonl"
    counter = 1
    while journal.exists():
        journal = root / f"{JOURNAL_PREFIX}{timestamp}_{counter}.jsonl"
        counter += 1

    handle = open(journal, 'w', encoding='utf-8')
    save_jsonl_line(handle, {
        "type": "undo_header",
        "root": str(root),
        "created_at": datetime.now().isoformat(timespec='seconds'),
    })
    return journal, handle


def _summarize(results: list[dict]) -> dict:
    counts = {"moved": 0, "planned": 0, "conflict": 0, "failed": 0}
    for res in results:
        counts[res["status"]] = counts.get(res["status"], 0) + 1
    return counts


def apply_plan(plan: MovePlan, config, show_progress: bool = True) -> dict:
    """
    Apply (or simulate) the move plan.

    In dry-run mode nothing on disk changes. Otherwise category folders are
    created if missing and each file is moved independently: a conflict or
    failure is recorded and the remaining moves still run.

    Args:
        plan: The merged MovePlan.
        config: The run's SorterConfig.
        show_progress: Show a tqdm progress bar while moving.

    Returns:
        Report dict with per-file results and counts.
    """
    root = Path(config.target_dir).resolve()
    moves = plan_moves(plan, root, config.taxonomy)
    dry_run = config.dry_run
    results: list[dict] = []
    created_folders: list[str] = []
    journal_path = None

    mode = "DRY-RUN" if dry_run else "APPLY"
    print(f"\n[{mode}] Starting plan execution...")

    if dry_run:
        for i, move in enumerate(moves):
            if i < PREVIEW_LIMIT:
                print(f"  [WOULD MOVE] {move['source'].name} -> {move['folder']}/{move['source'].name}")
            results.append({
                "source": str(move["source"]),
                "destination": str(move["destination"]),
                "category": move["category"],
                "status": "planned",
                "error": None,
            })
        if len(moves) > PREVIEW_LIMIT:
            print(f"  ... and {len(moves) - PREVIEW_LIMIT} more")

    else:
        # Folders first, sequentially, so worker threads only move files
        broken_folders: dict[str, str] = {}
        for folder in sorted({m["folder"] for m in moves}):
            folder_path = root / folder
            existed = folder_path.is_dir()
            try:
                folder_path.mkdir(exist_ok=True)
            except OSError as e:
                broken_folders[folder] = f"Failed to create folder: {e}"
                continue
            if not existed:
                created_folders.append(folder)

        runnable = []
        for move in moves:
            if move["folder"] in broken_folders:
                results.append({
                    "source": str(move["source"]),
                    "destination": str(move["destination"]),
                    "category": move["category"],
                    "status": "failed",
                    "error": broken_folders[move["folder"]],
                })
            else:
                runnable.append(move)

        journal_handle = None
        if runnable:
            journal_path, journal_handle = _open_journal(root)
            print(f"[SAFETY] Undo journal streaming to '{journal_path}'")

        try:
            with ThreadPoolExecutor(max_workers=MOVE_WORKERS) as executor:
                with tqdm(total=len(runnable), unit="file", disable=not show_progress) as pbar:
                    futures = {
                        executor.submit(_move_file, m["source"], m["destination"]): m
                        for m in runnable
                    }
                    for future in as_completed(futures):
                        move = futures[future]
                        res = future.result()
                        res["category"] = move["category"]
                        results.append(res)
                        if res["status"] == "moved":
                            save_jsonl_line(journal_handle, {
                                "source": res["destination"],
                                "destination": res["source"],
                            })
                        else:
                            tqdm.write(f"[{res['status'].upper()}] {res['error']}: {move['source'].name}")
                        pbar.update(1)
        finally:
            if journal_handle:
                journal_handle.close()

    results.sort(key=lambda r: r["source"])
    counts = _summarize(results)

    report = {
        "root": str(root),
        "dry_run": dry_run,
        "executed_at": datetime.now().isoformat(timespec='seconds'),
        "planned_moves_count": len(moves),
        "executed_moves_count": counts["moved"],
        "conflict_count": counts["conflict"],
        "failed_moves_count": counts["failed"],
        "created_folders": created_folders,
        "undo_journal": str(journal_path) if journal_path else None,
        "results": results,
    }

    if dry_run:
        print(f"\n[{mode}] Complete: {len(moves)} moves planned, nothing changed on disk")
    else:
        print(f"\n[{mode}] Complete: {counts['moved']} moved, {counts['conflict']} conflicts, {counts['failed']} failed")

    return report


def cleanup_empty_dirs(folders: list[Path]) -> list[str]:
    """
    Remove the given folders if they are empty.

    Args:
        folders: Candidate folders (e.g. category folders emptied by an undo).

    Returns:
        List of removed folder paths.
    """
    removed = []
    for folder in folders:
        try:
            # os.rmdir only works if the directory is empty
            os.rmdir(folder)
            removed.append(str(folder))
        except OSError:
            pass
    return removed


def undo_moves(journal_path: Path, dry_run: bool = False) -> dict:
    """
    Reverse the moves recorded in an undo journal.

    Moves are replayed newest first with the same no-overwrite policy as
    apply_plan. Category folders left empty afterwards are removed.

    Args:
        journal_path: Path to a journal written by apply_plan.
        dry_run: If True, only report what would be restored.

    Returns:
        Report dict with per-file results and counts.

    Raises:
        FileNotFoundError: If the journal does not exist.
        ValueError: If the file is not an undo journal.
    """
    journal_path = Path(journal_path)
    if not journal_path.exists():
        raise FileNotFoundError(f"Undo journal not found: {journal_path}")

    lines = list(load_jsonl(journal_path))
    if not lines or lines[0].get("type") != "undo_header":
        raise ValueError(f"Not an undo journal: {journal_path}")
    entries = [e for e in lines[1:] if "source" in e and "destination" in e]

    mode = "DRY-RUN" if dry_run else "UNDO"
    print(f"\n[{mode}] Restoring {len(entries)} files from {journal_path.name}...")

    results: list[dict] = []
    touched_folders: set[Path] = set()
    for entry in reversed(entries):
        src = Path(entry["source"])
        dst = Path(entry["destination"])
        if dry_run:
            results.append({"source": str(src), "destination": str(dst), "status": "planned", "error": None})
            continue
        res = _move_file(src, dst)
        results.append(res)
        if res["status"] == "moved":
            touched_folders.add(src.parent)
        else:
            print(f"  [{res['status'].upper()}] {res['error']}: {src}")

    removed = [] if dry_run else cleanup_empty_dirs(sorted(touched_folders))
    counts = _summarize(results)

    if dry_run:
        print(f"\n[{mode}] Complete: {len(entries)} restores planned")
    else:
        print(f"\n[{mode}] Complete: {counts['moved']} restored, {counts['conflict']} conflicts, {counts['failed']} failed")

    return {
        "journal": str(journal_path),
        "dry_run": dry_run,
        "executed_at": datetime.now().isoformat(timespec='seconds'),
        "restored_count": counts["moved"],
        "conflict_count": counts["conflict"],
        "failed_count": counts["failed"],
        "removed_folders": removed,
        "results": results,
    }
