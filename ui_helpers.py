import os
import json
from typing import List, Any
from rich.console import Console
from rich.table import Table

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def print_list_result(books: List[Any]) -> None:
    """Print the book list in the current output mode.
    - plain: 'ID - Title by Author' lines, or 'No books in library.'
    - json: JSON array of id, title, author, description
    - rich: Rich table
    """
    mode = get_output_mode()

    if not books:
        print("No books in library.")
        return

    if mode == "json":
        payload = [
            {
                "id": b.id,
                "title": b.title,
                "author": b.author,
                "description": b.description,
                "has_cover": b.has_cover,
            }
            for b in books
        ]
        print(json.dumps(payload, ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="📚 Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Cover", justify="center")
        for b in books:
            table.add_row(str(b.id), b.title, b.author, "✓" if b.has_cover else "")
        _console.print(table)
    else:
        for b in books:
            print(f"{b.id} - {b.title} by {b.author}")
