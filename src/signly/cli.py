"""Signly CLI: multi-party document signing from the command line.

Usage:
    signly --account alice create --file lease.pdf --title "Lease" \\
        --deadline "2025-03-01 12:00:00" --signer alice --signer bob
    signly --account bob sign <document-id>
    signly show <document-id>
    signly list [--creator alice]
    signly --account alice cancel <document-id>
    signly serve [--port 8400]
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import SignlySettings, build_engine
from .engine import SigningEngine
from .errors import SignlyError
from .models import Document, DocumentStatus, Identity

console = Console()

STATUS_COLORS = {
    DocumentStatus.PENDING: "yellow",
    DocumentStatus.PARTIALLY_SIGNED: "blue",
    DocumentStatus.COMPLETED: "green",
    DocumentStatus.CANCELLED: "red",
    DocumentStatus.EXPIRED: "red",
}


@click.group()
@click.option(
    "--data-dir",
    type=click.Path(),
    default=None,
    help="Signly data directory (default: ~/.signly)",
)
@click.option(
    "--account",
    envvar="SIGNLY_ACCOUNT",
    default=None,
    help="Account acting on documents (env: SIGNLY_ACCOUNT)",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Debug logging")
@click.pass_context
def main(
    ctx: click.Context,
    data_dir: Optional[str],
    account: Optional[str],
    verbose: bool,
) -> None:
    """Signly: multi-party document signing with deadlines."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    ctx.ensure_object(dict)
    settings = SignlySettings()
    if data_dir:
        settings = settings.model_copy(update={"data_dir": Path(data_dir)})
    ctx.obj["settings"] = settings
    ctx.obj["engine"] = build_engine(settings)
    ctx.obj["account"] = account


def _caller(ctx: click.Context) -> Identity:
    account = ctx.obj.get("account")
    if not account or not account.strip():
        console.print("[red]No account given. Use --account or set SIGNLY_ACCOUNT.[/]")
        sys.exit(1)
    return Identity(account=account)


def _fail(exc: SignlyError) -> None:
    console.print(f"[red]{exc.kind}: {exc.message}[/]")
    sys.exit(1)


def _render(doc: Document, engine: SigningEngine, title: str, border: str) -> None:
    now = engine.clock()
    status = doc.status(now)
    lines = [
        f"  Document: {doc.title}",
        f"  ID:       {doc.document_id}",
        f"  Digest:   {doc.content_digest}",
        f"  Creator:  {doc.created_by or '—'}",
        f"  Deadline: {doc.signing_deadline.strftime('%Y-%m-%d %H:%M:%S UTC')}",
        f"  Status:   [{STATUS_COLORS[status]}]{status.value}[/]",
        "",
        "  Signers:",
    ]
    for s in doc.signers:
        mark = (
            f"[green]signed {s.signed_at.strftime('%Y-%m-%d %H:%M')}[/]"
            if s.signed_at
            else "[dim]pending[/]"
        )
        lines.append(f"    {s.account}  {mark}")
    console.print(Panel("\n".join(lines), title=title, border_style=border))


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

@main.command()
@click.option("--digest", default=None, help="Content digest of the document")
@click.option("--file", "file_path", type=click.Path(exists=True), default=None, help="Compute the digest from this file")
@click.option("--title", required=True, help="Document title")
@click.option("--deadline", required=True, help="Signing deadline (ISO 8601 or 'YYYY-MM-DD HH:mm:ss', UTC)")
@click.option("--signer", "signers", multiple=True, required=True, help="Account that must sign (repeatable)")
@click.option("--fee", default=None, help="Attached registration fee")
@click.pass_context
def create(
    ctx: click.Context,
    digest: Optional[str],
    file_path: Optional[str],
    title: str,
    deadline: str,
    signers: tuple[str, ...],
    fee: Optional[str],
) -> None:
    """Register a document for signature."""
    engine: SigningEngine = ctx.obj["engine"]
    caller = _caller(ctx)

    if (digest is None) == (file_path is None):
        console.print("[red]Give exactly one of --digest or --file.[/]")
        sys.exit(1)
    if file_path is not None:
        digest = engine.hash_file(Path(file_path))

    try:
        doc = engine.create_document(
            content_digest=digest,
            title=title,
            deadline=deadline,
            signers=list(signers),
            caller=caller,
            fee_proof=fee,
        )
    except SignlyError as exc:
        _fail(exc)

    _render(doc, engine, "[bold green]Document registered[/]", "green")


# ---------------------------------------------------------------------------
# Show / List
# ---------------------------------------------------------------------------

@main.command()
@click.argument("document_id")
@click.pass_context
def show(ctx: click.Context, document_id: str) -> None:
    """Show a document and who has signed it."""
    engine: SigningEngine = ctx.obj["engine"]
    try:
        doc = engine.get_document(document_id)
    except SignlyError as exc:
        _fail(exc)
    _render(doc, engine, "Signly", "cyan")


@main.command("list")
@click.option("--creator", default=None, help="Creator account (default: --account)")
@click.pass_context
def list_docs(ctx: click.Context, creator: Optional[str]) -> None:
    """List the documents an account registered."""
    engine: SigningEngine = ctx.obj["engine"]
    account = ctx.obj.get("account")
    if creator is not None and not creator.strip():
        console.print("[red]--creator must not be blank.[/]")
        sys.exit(1)
    caller = _caller(ctx) if account is not None else None
    try:
        docs = engine.get_documents(
            creator=Identity(account=creator) if creator else None,
            caller=caller,
        )
    except SignlyError as exc:
        _fail(exc)

    if not docs:
        console.print("[dim]No documents found.[/]")
        return

    now = engine.clock()
    table = Table(title="Signly Documents")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Status", justify="center")
    table.add_column("Signers", justify="right")
    table.add_column("Deadline")

    for doc in docs:
        status = doc.status(now)
        table.add_row(
            doc.document_id,
            doc.title,
            f"[{STATUS_COLORS[status]}]{status.value}[/]",
            f"{len(doc.signed_by)}/{len(doc.signers)}",
            doc.signing_deadline.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


# ---------------------------------------------------------------------------
# Sign / Cancel / Delete
# ---------------------------------------------------------------------------

@main.command()
@click.argument("document_id")
@click.pass_context
def sign(ctx: click.Context, document_id: str) -> None:
    """Add your signature to a document."""
    engine: SigningEngine = ctx.obj["engine"]
    caller = _caller(ctx)
    try:
        doc = engine.add_sign(document_id, caller)
    except SignlyError as exc:
        _fail(exc)
    _render(doc, engine, f"[bold green]Signed by {caller}[/]", "green")


@main.command()
@click.argument("document_id")
@click.confirmation_option(prompt="Cancelling is irrevocable. Continue?")
@click.pass_context
def cancel(ctx: click.Context, document_id: str) -> None:
    """Cancel one of your documents."""
    engine: SigningEngine = ctx.obj["engine"]
    caller = _caller(ctx)
    try:
        doc = engine.cancel_document(document_id, caller)
    except SignlyError as exc:
        _fail(exc)
    _render(doc, engine, "[bold red]Document cancelled[/]", "red")


@main.command()
@click.argument("document_id")
@click.confirmation_option(prompt="Delete this document permanently?")
@click.pass_context
def delete(ctx: click.Context, document_id: str) -> None:
    """Remove one of your documents entirely (testing/operations)."""
    engine: SigningEngine = ctx.obj["engine"]
    caller = _caller(ctx)
    try:
        doc = engine.delete_document(document_id, caller)
    except SignlyError as exc:
        _fail(exc)
    console.print(f"[bold]Deleted[/] {doc.document_id} ({doc.title})")


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------

@main.command()
@click.argument("document_id")
@click.pass_context
def audit(ctx: click.Context, document_id: str) -> None:
    """Show the audit trail for a document."""
    engine: SigningEngine = ctx.obj["engine"]
    entries = engine.get_audit_trail(document_id)

    if not entries:
        console.print("[dim]No audit entries found.[/]")
        return

    table = Table(title="Audit Trail")
    table.add_column("Time", style="dim")
    table.add_column("Action", style="cyan")
    table.add_column("Actor")
    table.add_column("Details")

    for e in entries:
        table.add_row(
            e.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            e.action.value,
            e.actor or "—",
            e.details,
        )

    console.print(table)


# ---------------------------------------------------------------------------
# Digest
# ---------------------------------------------------------------------------

@main.command()
@click.argument("file", type=click.Path(exists=True))
def digest(file: str) -> None:
    """Print the SHA-256 digest of a file."""
    click.echo(SigningEngine.hash_file(Path(file)))


# ---------------------------------------------------------------------------
# Serve
# ---------------------------------------------------------------------------

@main.command()
@click.option("--host", default=None, help="Bind address")
@click.option("--port", default=None, type=int, help="Port")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int]) -> None:
    """Start the Signly API server."""
    import uvicorn

    from .api import create_app

    settings: SignlySettings = ctx.obj["settings"]
    host = host or settings.host
    port = port or settings.port

    console.print(
        f"[bold]Signly API[/] listening on [cyan]http://{host}:{port}[/]"
    )
    uvicorn.run(
        create_app(engine=ctx.obj["engine"]),
        host=host,
        port=port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
