import asyncio
import typer
import logging
import sys
from pathlib import Path
from typing import Optional
if sys.platform == "win32":
    # asyncpg не работает с ProactorEventLoop по умолчанию в Windows
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
from docshare_client import create_document_client
from docshare_client import logging as json_logging
from docshare_client.config import get_settings
from docshare_client.exceptions import DocumentClientError
from docshare_client.utils.cli_utils import get_rich_console

from docshare_client.db.base import Base
from sqlalchemy.ext.asyncio import create_async_engine


app = typer.Typer(help="CLI for docshare-client management.")
logger = logging.getLogger(__name__)
console = get_rich_console()


@app.callback()
def main(log_level: Optional[str] = typer.Option(None, "--log-level", help="Overrides LOG_LEVEL.")):
    json_logging.configure(log_level)


@app.command()
def init():
    """
    Initializes all necessary services: creates DB tables and ensures the MinIO bucket exists.
    """
    console.rule("[bold cyan]Service Initialization[/bold cyan]")

    with console.status("Creating PostgreSQL tables...", spinner="dots"):
        async def _create_tables():
            settings = get_settings()
            engine = create_async_engine(settings.postgres.get_pg_dsn())
            try:
                async with engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
            finally:
                await engine.dispose()

        try:
            asyncio.run(_create_tables())
            console.print("[bold green]✔[/bold green] Database tables created successfully.")
        except Exception as e:
            console.print(f"[bold red]✖[/bold red] Database initialization FAILED: {e}")
            raise typer.Exit(code=1)

    with console.status("Initializing MinIO storage bucket...", spinner="dots"):
        async def _init_storage():
            client = create_document_client()
            try:
                await client.blobs.check_connection()
                return client.blobs.bucket
            finally:
                await client.aclose()

        try:
            bucket = asyncio.run(_init_storage())
            console.print(f"[bold green]✔[/bold green] MinIO bucket '{bucket}' is ready.")
        except DocumentClientError as e:
            console.print(f"[bold red]✖[/bold red] MinIO storage initialization FAILED: {e}")
            raise typer.Exit(code=1)

    console.print("\n[bold green]✅ All services initialized successfully![/bold green]")


@app.command()
def check():
    """Checks connectivity to all external services (PostgreSQL, MinIO)."""
    console.rule("[bold cyan]Connection Check[/bold cyan]")

    async def _check():
        client = create_document_client()
        try:
            return await client.check_connections()
        finally:
            await client.aclose()

    statuses = asyncio.run(_check())
    failed = False
    for service, label in (("postgres", "PostgreSQL"), ("minio", "MinIO")):
        status = statuses.get(service, "unknown error")
        if status == "ok":
            console.print(f"[bold green]✔[/bold green] {label} connection: OK")
        else:
            failed = True
            console.print(f"[bold red]✖[/bold red] {label} connection: FAILED ({status})")
    if failed:
        raise typer.Exit(code=1)


@app.command()
def upload(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    name: Optional[str] = typer.Option(None, help="Display name of the document."),
):
    """Uploads a local file and prints the new document id."""
    async def _upload():
        client = create_document_client()
        try:
            return await client.upload_document(path.read_bytes(), name, path.name)
        finally:
            await client.aclose()

    try:
        doc_id = asyncio.run(_upload())
    except DocumentClientError as e:
        console.print(f"[bold red]✖[/bold red] Upload FAILED: {e}")
        raise typer.Exit(code=1)
    typer.echo(doc_id)


@app.command("share-link")
def share_link(
    doc_id: int,
    valid_for_hours: int = typer.Option(4, "--valid-for-hours"),
    share_link_expires_in_hours: int = typer.Option(24, "--share-hours"),
):
    """Issues a fresh access token and share link for a document."""
    async def _share():
        client = create_document_client()
        try:
            return await client.get_share_link(doc_id, valid_for_hours, share_link_expires_in_hours)
        finally:
            await client.aclose()

    try:
        result = asyncio.run(_share())
    except DocumentClientError as e:
        console.print(f"[bold red]✖[/bold red] {e}")
        raise typer.Exit(code=2)
    if result is None:
        console.print(f"[bold red]✖[/bold red] Document {doc_id} not found.")
        raise typer.Exit(code=1)
    console.print(f"Token expires at {result.expires_at.isoformat()}")
    typer.echo(result.share_link.url)


@app.command()
def delete(doc_id: int):
    """Deletes a document (no-op if it does not exist)."""
    async def _delete():
        client = create_document_client()
        try:
            await client.delete_document(doc_id)
        finally:
            await client.aclose()

    asyncio.run(_delete())
    console.print(f"[bold green]✔[/bold green] Document {doc_id} deleted.")


@app.command("list")
def list_documents(limit: Optional[int] = typer.Option(None, min=1)):
    """Lists documents, newest first."""
    async def _list():
        client = create_document_client()
        try:
            return await client.list_documents(limit)
        finally:
            await client.aclose()

    for d in asyncio.run(_list()):
        typer.echo(f"{d.id}\t{d.file_name}\t{d.file_type}\t{d.download_count}")


if __name__ == "__main__":
    app()
