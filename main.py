import asyncio
import logging
import subprocess
import sys
from typing import Optional

import typer
from rich.console import Console

from config import settings
from cover_service import CoverService
from database import StorageError
from http_client import OptimizedHTTPClient
from library import Library
from ui_helpers import set_output_mode, print_list_result

logging.basicConfig(level=settings.log_level)

console = Console()

app = typer.Typer(help="Book collection CLI")


def _open_library() -> Library:
    return Library.from_file(
        settings.database_file,
        pool_size=settings.database_pool_size,
        pool_timeout=settings.database_pool_timeout,
    )


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    )
):
    """Global CLI options (e.g. output mode)."""
    if output:
        set_output_mode(output)


@app.command("list")
def cli_list():
    """List every book in the collection."""
    try:
        lib = _open_library()
    except StorageError as e:
        console.print(f"[bold red]Error:[/] {e}")
        raise typer.Exit(code=1)
    try:
        print_list_result(lib.list_books())
    except StorageError as e:
        console.print(f"[bold red]Error:[/] {e}")
        raise typer.Exit(code=1)
    finally:
        lib.close()


@app.command("init-db")
def cli_init_db():
    """Create the books table if it doesn't exist."""
    try:
        lib = _open_library()
    except StorageError as e:
        console.print(f"[bold red]Error:[/] {e}")
        raise typer.Exit(code=1)
    lib.close()
    print(f"Database ready: {settings.database_file}")


async def _lookup_cover(title: str) -> Optional[str]:
    async with OptimizedHTTPClient(timeout=settings.openlibrary_timeout) as http_client:
        service = CoverService(
            http_client,
            search_url=settings.openlibrary_search_url,
            cover_url_template=settings.openlibrary_cover_url,
        )
        return await service.fetch_cover_url(title)


@app.command("cover")
def cli_cover(title: str = typer.Argument(..., help="Book title to look up")):
    """Look up a cover image URL on Open Library."""
    cover_url = asyncio.run(_lookup_cover(title))
    if cover_url:
        print(cover_url)
    else:
        print("No cover found.")


@app.command("serve")
def cli_serve(reload: bool = typer.Option(False, "--reload/--no-reload", help="Restart on code changes")):
    """Start the web interface with uvicorn."""
    host = settings.api_host
    port = int(settings.api_port)
    print(f"Starting web UI on http://{host}:{port}/")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "api:app",
        "--host", host,
        "--port", str(port),
    ]
    if reload:
        args.append("--reload")
    try:
        subprocess.run(args, check=False)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    app()
