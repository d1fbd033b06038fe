# credledger/cli/main.py
"""
CLI for managing a credential ledger: issuers, subjects, credentials,
the open block and the chain itself.
"""

import logging
import os
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from credledger.chain.assertion import CredentialRecord
from credledger.chain.block import Block
from credledger.core.errors import LedgerError, NoOpenBlockError
from credledger.core.types import Attribute, Credential, Issuer, Subject, ValidDuration
from credledger.storage import StorageBackend, create_storage
from credledger.verify.verifier import ChainAuditor

T = TypeVar("T")

app = typer.Typer(
    name="credledger",
    help="Issue, revoke and verify credentials on a hash-chained ledger",
    add_completion=False,
    no_args_is_help=True,
)
issuers_app = typer.Typer(help="Add or list issuers", no_args_is_help=True)
subjects_app = typer.Typer(help="Add or list subjects", no_args_is_help=True)
credentials_app = typer.Typer(help="Add or list credentials", no_args_is_help=True)
block_app = typer.Typer(help="Build the open block and finalize it into the chain", no_args_is_help=True)
chain_app = typer.Typer(help="Display, audit and query the chain", no_args_is_help=True)
blockchain_app = typer.Typer(help="Initialize, display, audit and query the chain", no_args_is_help=True)
app.add_typer(issuers_app, name="issuers")
app.add_typer(subjects_app, name="subjects")
app.add_typer(credentials_app, name="credentials")
app.add_typer(block_app, name="block")
app.add_typer(chain_app, name="chain")
app.add_typer(blockchain_app, name="blockchain")

console = Console()
logger = logging.getLogger("credledger")

DATE_FORMATS = ["%Y-%m-%d"]


def get_store_uri(store_flag: Optional[str] = None) -> str:
    """Resolve the store location in this order:
    1. --store flag
    2. CREDLEDGER_STORE environment variable
    3. Default: ~/.credledger (JSON files)
    """
    if store_flag:
        return store_flag
    env_store = os.environ.get("CREDLEDGER_STORE")
    if env_store:
        return env_store
    return str(Path.home() / ".credledger")


def open_store(ctx: typer.Context) -> StorageBackend:
    return create_storage(ctx.obj["store_uri"])


@contextmanager
def ledger_errors():
    """Turn ledger errors into a red message and exit code 1."""
    try:
        yield
    except LedgerError as e:
        logger.debug("Command failed", exc_info=True)
        console.print(f"[red]{e}[/]")
        raise typer.Exit(1)


def pick(items: List[T], index: int, kind: str) -> T:
    if not 0 <= index < len(items):
        console.print(f"[red]No {kind} with index {index} ({len(items)} available)[/]")
        raise typer.Exit(1)
    return items[index]


def require_open_block(storage: StorageBackend) -> Block:
    block = storage.load_open_block()
    if block is None:
        raise NoOpenBlockError("No open block (run `credledger block new <issuer>` first)")
    return block


@app.callback()
def main(
    ctx: typer.Context,
    store: Optional[str] = typer.Option(
        None,
        "--store",
        "-s",
        help="Ledger store: a directory, a .db file, json://<dir> or sqlite://<path> "
             "(overrides CREDLEDGER_STORE env var)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Manage a credential ledger."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    ctx.obj = {"store_uri": get_store_uri(store)}


@app.command()
def init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Discard an existing ledger"),
):
    """Initialize an empty ledger (chain, registries and key store)."""
    with ledger_errors(), open_store(ctx) as storage:
        if storage.is_initialized() and not force:
            console.print("[yellow]Ledger already initialized. Use --force to start over.[/]")
            raise typer.Exit(1)
        storage.initialize()
    console.print(f"[green]Initialized new ledger at {ctx.obj['store_uri']}[/]")


# ── issuers ──────────────────────────────────────────────────────────────

@issuers_app.command("add")
def issuers_add(ctx: typer.Context, name: str = typer.Argument(..., help="Issuer display name")):
    """Create a new issuer and store its signing key locally."""
    with ledger_errors(), open_store(ctx) as storage:
        issuer, keys = Issuer.new(name)
        storage.add_issuer(issuer)
        storage.store_signing_key(issuer.id, keys)
    console.print(f"[green]Created issuer {issuer.name}[/] ({issuer.id})")


@issuers_app.command("list")
def issuers_list(ctx: typer.Context):
    """List issuers with their indexes."""
    with ledger_errors(), open_store(ctx) as storage:
        issuers = storage.load_issuers()

    if not issuers:
        console.print("[yellow]No issuers yet.[/]")
        return

    table = Table(title="Issuers")
    table.add_column("#")
    table.add_column("Name")
    table.add_column("ID")
    table.add_column("Verification key")
    for i, issuer in enumerate(issuers):
        table.add_row(str(i), issuer.name, issuer.id, issuer.verification_key.to_hex()[:16] + "…")
    console.print(table)


# ── subjects ─────────────────────────────────────────────────────────────

@subjects_app.command("add")
def subjects_add(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Given name"),
    surname: str = typer.Argument(..., help="Surname"),
):
    """Add a new subject."""
    with ledger_errors(), open_store(ctx) as storage:
        subject = Subject.new(name, surname)
        storage.add_subject(subject)
    console.print(f"[green]Created subject {subject.name} {subject.surname}[/] ({subject.id})")


@subjects_app.command("list")
def subjects_list(ctx: typer.Context):
    """List subjects with their indexes."""
    with ledger_errors(), open_store(ctx) as storage:
        subjects = storage.load_subjects()

    if not subjects:
        console.print("[yellow]No subjects yet.[/]")
        return

    table = Table(title="Subjects")
    table.add_column("#")
    table.add_column("Name")
    table.add_column("Surname")
    table.add_column("ID")
    for i, subject in enumerate(subjects):
        table.add_row(str(i), subject.name, subject.surname, subject.id)
    console.print(table)


# ── credentials ──────────────────────────────────────────────────────────

@credentials_app.command("add")
def credentials_add(
    ctx: typer.Context,
    issuer: int = typer.Argument(..., help="Index of the credential's issuer"),
    subject: int = typer.Argument(..., help="Index of the credential's subject"),
    name: str = typer.Argument(..., help="Name of the attribute"),
    value: str = typer.Argument(..., help="Value of the attribute"),
    valid_from: datetime = typer.Argument(..., formats=DATE_FORMATS, help="Date from which the attribute is valid"),
    valid_to: Optional[datetime] = typer.Argument(
        None, formats=DATE_FORMATS, help="Date to which the attribute is valid, indefinite if omitted"
    ),
):
    """Create a credential and pre-sign its issuance and revocation assertions."""
    with ledger_errors(), open_store(ctx) as storage:
        chosen_issuer = pick(storage.load_issuers(), issuer, "issuer")
        chosen_subject = pick(storage.load_subjects(), subject, "subject")
        try:
            duration = ValidDuration(valid_from.date(), valid_to.date() if valid_to else None)
        except ValueError as e:
            console.print(f"[red]{e}[/]")
            raise typer.Exit(1)

        credential = Credential.new(Attribute(name, value), chosen_issuer, chosen_subject, duration)
        keys = storage.load_signing_key(chosen_issuer.id)
        storage.add_credential(CredentialRecord.issue(credential, keys))
    console.print(f"[green]Created credential[/] {credential}")


@credentials_app.command("list")
def credentials_list(ctx: typer.Context):
    """List credentials with their indexes."""
    with ledger_errors(), open_store(ctx) as storage:
        records = storage.load_credentials()

    if not records:
        console.print("[yellow]No credentials yet.[/]")
        return

    table = Table(title="Credentials")
    table.add_column("#")
    table.add_column("Attribute")
    table.add_column("Subject")
    table.add_column("Issuer")
    table.add_column("Valid")
    for i, record in enumerate(records):
        c = record.credential
        table.add_row(
            str(i),
            f"{c.attribute.name}={c.attribute.value}",
            f"{c.subject.name} {c.subject.surname}",
            c.issuer.name,
            str(c.valid_duration),
        )
    console.print(table)


# ── block ────────────────────────────────────────────────────────────────

@block_app.command("new")
def block_new(
    ctx: typer.Context,
    issuer: int = typer.Argument(..., help="Index of the issuer creating the block"),
    force: bool = typer.Option(False, "--force", help="Discard the current open block"),
):
    """Open a new block created by the given issuer."""
    with ledger_errors(), open_store(ctx) as storage:
        creator = pick(storage.load_issuers(), issuer, "issuer")
        if storage.load_open_block() is not None and not force:
            console.print("[yellow]A block is already open. Finalize it or use --force.[/]")
            raise typer.Exit(1)
        storage.load_signing_key(creator.id)  # fail now rather than at finalize
        storage.save_open_block(Block.new(creator))
    console.print(f"[green]Opened a new block created by {creator.name}[/]")


def _add_to_block(ctx: typer.Context, credential: int, is_revocation: bool) -> None:
    with ledger_errors(), open_store(ctx) as storage:
        record = pick(storage.load_credentials(), credential, "credential")
        block = require_open_block(storage)
        block.add_assertion(record.revocation if is_revocation else record.issuance, is_revocation)
        storage.save_open_block(block)


@block_app.command("add")
def block_add(ctx: typer.Context, credential: int = typer.Argument(..., help="Index of the credential")):
    """Add a credential's issuance assertion to the open block."""
    _add_to_block(ctx, credential, is_revocation=False)
    console.print("[green]Added credential to the block[/]")


@block_app.command("revoke")
def block_revoke(ctx: typer.Context, credential: int = typer.Argument(..., help="Index of the credential")):
    """Add a credential's revocation assertion to the open block."""
    _add_to_block(ctx, credential, is_revocation=True)
    console.print("[green]Added credential to the block's revocation list[/]")


@block_app.command("display")
def block_display(ctx: typer.Context):
    """Show the open block as JSON."""
    with ledger_errors(), open_store(ctx) as storage:
        block = require_open_block(storage)
    console.print_json(data=block.to_dict())


@block_app.command("finalize")
def block_finalize(ctx: typer.Context):
    """Finalize the open block and append it to the chain."""
    with ledger_errors(), open_store(ctx) as storage:
        chain = storage.load_chain()
        block = require_open_block(storage)
        keys = storage.load_signing_key(block.creator.id)
        chain.add_block(block, keys)
        storage.commit_block(chain)
    console.print(f"[green]Added block #{len(chain) - 1} to the chain[/] ({block.hash.to_hex()[:16]}…)")


# ── chain ────────────────────────────────────────────────────────────────

@chain_app.command("display")
def chain_display(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Dump the full chain as JSON"),
):
    """Show the chain."""
    with ledger_errors(), open_store(ctx) as storage:
        chain = storage.load_chain()

    if as_json:
        console.print_json(data=chain.to_dict())
        return

    if not len(chain):
        console.print("[yellow]Chain is empty.[/]")
        return

    table = Table(title="Blockchain")
    table.add_column("#")
    table.add_column("Timestamp")
    table.add_column("Creator")
    table.add_column("Issued")
    table.add_column("Revoked")
    table.add_column("Hash")
    for i, block in enumerate(chain):
        table.add_row(
            str(i), block.timestamp, block.creator.name,
            str(len(block.issuances)), str(len(block.revocations)),
            block.hash.to_hex()[:16] + "…",
        )
    console.print(table)


@chain_app.command("verify")
def chain_verify(
    ctx: typer.Context,
    credential: int = typer.Argument(..., help="Index of the credential to check"),
):
    """Check whether a credential is currently valid on the chain."""
    with ledger_errors(), open_store(ctx) as storage:
        record = pick(storage.load_credentials(), credential, "credential")
        chain = storage.load_chain()

    result = chain.check_credential(record.credential)
    colour = "green" if result else "red"
    console.print(f"[{colour}]Result: {str(result).lower()}[/]")
    if result and not record.credential.valid_duration.covers(date.today()):
        console.print(f"[yellow]Note: today is outside the validity window {record.credential.valid_duration}[/]")


@chain_app.command("audit")
def chain_audit(ctx: typer.Context):
    """Re-derive every block hash and check links and block signatures."""
    with ledger_errors(), open_store(ctx) as storage:
        result = ChainAuditor().audit_from_storage(storage)

    if result.is_valid:
        console.print(f"[green]✓ {result.message}[/]")
        return

    console.print("[red]✗ Chain audit failed[/]")
    for failure in result.failures:
        console.print(f"  • [{failure.index}] {failure.category}: {failure.message}")
    raise typer.Exit(1)


# `blockchain display|init|verify|audit` keeps the original command surface
blockchain_app.command("init")(init)
blockchain_app.command("display")(chain_display)
blockchain_app.command("verify")(chain_verify)
blockchain_app.command("audit")(chain_audit)


if __name__ == "__main__":
    app()
