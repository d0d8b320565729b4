"""
Utility functions for the LLM File Sorter.

Includes:
- Console output helpers
- JSON / JSONL save and load helpers
"""

import json
from pathlib import Path
from typing import Any, Generator

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

# Global console instance
console = Console()


def print_header(title: str, subtitle: str = ""):
    """Print a styled header."""
    console.print(Panel(f"[bold blue]{title}[/bold blue]\n[italic]{escape(subtitle)}[/italic]", expand=False))


def print_plan_table(plan, root: Path, sample: int = 10):
    """
    Print a per-category summary of a move plan plus a few sample moves.

    Args:
        plan: The MovePlan to summarise.
        root: Target directory the plan applies to.
        sample: How many individual moves to show.
    """
    counts = plan.counts()

    table = Table(title="Plan Summary")
    table.add_column("Category", style="cyan")
    table.add_column("Files", style="magenta", justify="right")
    for category, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])):
        table.add_row(category, str(count))
    table.add_row("[bold]Total[/bold]", f"[bold]{len(plan)}[/bold]")
    console.print(table)

    items = plan.items()
    if items:
        tree = Tree(f"[bold green]Sample Moves[/bold green] [dim]({escape(str(root))})[/dim]")
        for entry, category in items[:sample]:
            tree.add(f"[yellow]{escape(entry.name)}[/yellow] -> [blue]{escape(category)}/[/blue]")
        if len(items) > sample:
            tree.add(f"[italic]... and {len(items) - sample} more[/italic]")
        console.print(tree)


def print_error(msg: str):
    console.print(f"[bold red]ERROR:[/bold red] {escape(msg)}")


def print_warning(msg: str):
    console.print(f"[bold yellow]WARNING:[/bold yellow] {escape(msg)}")


def print_success(msg: str):
    console.print(f"[bold green]SUCCESS:[/bold green] {escape(msg)}")


def save_json(data: Any, path: Path) -> None:
    """
    Save data to a JSON file with pretty formatting.

    Args:
        data: The data to serialize.
        path: The output file path.
    """
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    print(f"[INFO] Saved: {path}")


def load_json(path: Path) -> Any:
    """
    Load data from a JSON file.

    Args:
        path: The input file path.

    Returns:
        The deserialized data.
    """
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def save_jsonl_line(handle, item: dict) -> None:
    """Append one JSON object as a line to an open text handle."""
    handle.write(json.dumps(item, ensure_ascii=False) + '\n')
    handle.flush()


def load_jsonl(path: Path) -> Generator[dict, None, None]:
    """
    Yield objects from a JSONL file, skipping blank or corrupt lines.

    Args:
        path: Path to the .jsonl file.

    Yields:
        One dict per valid line.
    """
    with open(path, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict):
                yield data
