#!/usr/bin/env python3
"""
LLM File Sorter - CLI Entry Point
=================================

Usage:
    python -m llm_file_sorter -t ~/Downloads --dry-run
    python -m llm_file_sorter -t ~/Downloads -m llama3.1:8b -b 20
    python -m llm_file_sorter --undo ~/Downloads/.llm_file_sorter_undo_20260101_120000.jsonl
"""

import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from .config import DEFAULT_BATCH_SIZE, SorterConfig
from .executor import apply_plan, undo_moves
from .llm import InferenceClient
from .llm.models import (
    DEFAULT_API_URL,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_WORKERS,
    DEFAULT_MODEL,
    DEFAULT_REQUEST_TIMEOUT,
    ENV_API_URL,
    ENV_MODEL,
)
from .planning import classify_batches, plan_batches
from .scanner import scan_directory
from .utils import console, print_error, print_header, print_plan_table, print_success, print_warning, save_json


def _print_errors(results: list[dict]) -> None:
    errors = [r for r in results if r["status"] in ("conflict", "failed")]
    if not errors:
        return
    console.print("\n[bold red]Errors encountered:[/bold red]")
    for err in errors[:5]:
        console.print(f"  - {Path(err['source']).name}: {err['error']}", markup=False)
    if len(errors) > 5:
        console.print(f"  ... and {len(errors) - 5} more")


def build_config(args) -> SorterConfig:
    """
    Build the run configuration from parsed arguments.

    Raises:
        ValueError: If any value is out of range.
    """
    return SorterConfig(
        target_dir=args.target_dir,
        model=args.model,
        api_url=args.api_url,
        batch_size=args.batch_size,
        dry_run=args.dry_run,
        max_workers=args.workers,
        max_retries=args.retries,
        request_timeout=args.timeout,
    )


def cmd_undo(args) -> int:
    """Replay an undo journal."""
    try:
        print_header("UNDO", str(args.undo))
        report = undo_moves(args.undo, dry_run=args.dry_run)

        if args.report_out:
            save_json(report, args.report_out)

        _print_errors(report["results"])
        if report["conflict_count"] or report["failed_count"]:
            print_warning("Some files could not be restored; they were left where they are.")
        else:
            print_success(f"Restored {report['restored_count']} files")

        if args.dry_run:
            print_warning("This was a DRY-RUN. No files were actually moved.")
        return 0

    except (OSError, ValueError) as e:
        print_error(str(e))
        return 1
    except KeyboardInterrupt:
        print("\n[ABORT] Operation cancelled by user")
        return 130


def cmd_run(args) -> int:
    """Full pipeline: scan, classify, then preview or apply."""
    try:
        try:
            config = build_config(args)
        except ValueError as e:
            print_error(str(e))
            return 1

        root = Path(config.target_dir)
        print_header("LLM FILE SORTER", f"{root} | {config.model}")

        # Step 1: Scan
        console.print("\n[bold cyan][STEP 1] Scanning directory...[/bold cyan]")
        try:
            entries = scan_directory(config)
        except OSError as e:
            print_error(str(e))
            return 1

        if not entries:
            console.print("No files found to sort.")
            return 0

        batches = plan_batches(entries, config.batch_size)
        console.print(f"[INFO] {len(entries)} files in {len(batches)} batches of up to {config.batch_size}", markup=False)

        # Step 2: Classify
        console.print("\n[bold cyan][STEP 2] Classifying filenames...[/bold cyan]")
        client = InferenceClient(config)
        try:
            run = classify_batches(batches, config, client)
        finally:
            client.close()

        print_plan_table(run.plan, root)

        if run.failed_batches:
            print_warning(
                f"{len(run.failed_batches)} batch(es) could not be classified; "
                f"their files default to Other: {', '.join(run.failed_batches[:5])}"
            )
        if run.fallback_count:
            console.print(f"[dim]{run.fallback_count} file(s) defaulted to Other in total[/dim]")

        if run.interrupted:
            print_warning(
                f"Interrupted: {len(run.pending_batches)} batch(es) were never classified. "
                f"The partial plan above was NOT applied."
            )
            return 130

        # Step 3: Apply
        console.print("\n[bold cyan][STEP 3] Applying plan...[/bold cyan]")
        report = apply_plan(run.plan, config)
        report["model"] = config.model
        report["failed_batches"] = run.failed_batches

        if args.report_out:
            save_json(report, args.report_out)

        _print_errors(report["results"])

        print_success("Operation Complete!")
        if report["undo_journal"]:
            console.print(f"Undo:      {report['undo_journal']}", markup=False)

        if config.dry_run:
            print_warning("This was a DRY-RUN. No files were actually moved.")
            console.print("       Run without --dry-run to apply changes.")

        return 0

    except KeyboardInterrupt:
        print("\n[ABORT] Operation cancelled by user")
        return 130
    except Exception as e:
        print(f"\n[ERROR] {e}")
        return 1


# =============================================================================
# Main
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llm-file-sorter",
        description="LLM File Sorter - Sort loose files into category folders by filename",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-t", "--target-dir", type=Path, default=Path("."),
                        help="Directory to sort (default: current directory)")
    parser.add_argument("-m", "--model", type=str,
                        default=os.environ.get(ENV_MODEL, DEFAULT_MODEL),
                        help=f"Model to use (default: ${ENV_MODEL} or {DEFAULT_MODEL})")
    parser.add_argument("--api-url", type=str,
                        default=os.environ.get(ENV_API_URL, DEFAULT_API_URL),
                        help=f"Inference endpoint (default: ${ENV_API_URL} or {DEFAULT_API_URL})")
    parser.add_argument("-b", "--batch-size", type=int, default=DEFAULT_BATCH_SIZE,
                        help=f"Filenames per request (default: {DEFAULT_BATCH_SIZE})")
    parser.add_argument("--dry-run", action="store_true",
                        help="Show the plan without modifying files")
    parser.add_argument("-w", "--workers", type=int, default=DEFAULT_MAX_WORKERS,
                        help=f"Concurrent requests (default: {DEFAULT_MAX_WORKERS})")
    parser.add_argument("--retries", type=int, default=DEFAULT_MAX_RETRIES,
                        help=f"Attempts per batch (default: {DEFAULT_MAX_RETRIES})")
    parser.add_argument("--timeout", type=float, default=DEFAULT_REQUEST_TIMEOUT,
                        help=f"Per-request timeout in seconds (default: {DEFAULT_REQUEST_TIMEOUT:g})")
    parser.add_argument("--report-out", type=Path,
                        help="Write a JSON report of the run")
    parser.add_argument("--undo", type=Path, metavar="JOURNAL",
                        help="Reverse a previous run from its undo journal")
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    if args.undo:
        return cmd_undo(args)
    return cmd_run(args)


if __name__ == "__main__":
    sys.exit(main())
