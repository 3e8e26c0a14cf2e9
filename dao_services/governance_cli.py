#!/usr/bin/env python3
"""
Governance replay CLI

Usage:
    dao-governance replay FILE [--env-file PATH] [--snapshot OUT] [--strict]
    dao-governance config [--env-file PATH]

FILE is either a JSON list of transactions or an object:

    {
        "owner": "alice",
        "arbitrator": "judge",
        "balances": {"bob": 500},
        "transactions": [{"op": "register", "caller": "bob", "seq": 1}, ...]
    }
"""

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .governance import GovernanceConfig, GovernanceEngine, GovernanceError, InMemoryLedger

logger = logging.getLogger(__name__)

app = typer.Typer(help="Shareholder DAO governance tools")

DEFAULT_OWNER = "owner"


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )


def _load_config(console: Console, env_file: Optional[Path]) -> GovernanceConfig:
    try:
        return GovernanceConfig.from_env(str(env_file) if env_file else None)
    except GovernanceError as e:
        console.print(f"[red]Invalid configuration:[/] {e.message}")
        raise typer.Exit(code=2)


@app.command("replay")
def replay(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON transaction file"),
    env_file: Optional[Path] = typer.Option(None, "--env-file", "-e", help=".env file with DAO_* overrides"),
    snapshot: Optional[Path] = typer.Option(None, "--snapshot", "-s", help="Write final state as JSON"),
    log_level: str = typer.Option("WARNING", "--log-level", "-l"),
    strict: bool = typer.Option(False, "--strict", help="Exit 1 if any transaction is rejected"),
):
    """Replay a transaction file through a fresh engine."""
    _setup_logging(log_level)
    console = Console()
    config = _load_config(console, env_file)

    try:
        payload = json.loads(file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]Cannot parse {file}:[/] {e}")
        raise typer.Exit(code=2)

    if isinstance(payload, list):
        payload = {"transactions": payload}
    if not isinstance(payload, dict) or not isinstance(payload.get("transactions"), list):
        console.print("[red]Expected a list of transactions or an object with 'transactions'[/]")
        raise typer.Exit(code=2)

    try:
        ledger = InMemoryLedger(payload.get("balances") or {})
    except GovernanceError as e:
        console.print(f"[red]Invalid balances:[/] {e.message}")
        raise typer.Exit(code=2)

    engine = GovernanceEngine(
        payload.get("owner") or DEFAULT_OWNER,
        config=config,
        ledger=ledger,
        arbitrator=payload.get("arbitrator")
    )
    receipts = engine.replay(payload["transactions"])

    table = Table(title=f"Receipts ({file.name})")
    table.add_column("#", justify="right")
    table.add_column("Seq", justify="right")
    table.add_column("Operation", style="cyan")
    table.add_column("Status")
    table.add_column("Detail")
    for i, receipt in enumerate(receipts, 1):
        if receipt.ok:
            status = "[green]ok[/]"
            detail = json.dumps(receipt.result, default=str)
        else:
            status = f"[red]{receipt.error_code}[/]"
            detail = receipt.message or ""
        if len(detail) > 80:
            detail = detail[:77] + "..."
        table.add_row(str(i), str(receipt.seq), str(receipt.op), status, detail)
    console.print(table)

    stats = engine.get_statistics()
    failed = len([r for r in receipts if not r.ok])
    console.print(Panel(
        f"Transactions: {len(receipts)} ({failed} rejected)\n"
        f"Accounts: {stats['accounts']} ({stats['verified_accounts']} verified)\n"
        f"Proposals: {stats['total_proposals']}  Disputes: {stats['total_disputes']}\n"
        f"Audit entries: {stats['audit_entries']}",
        title="Summary"
    ))

    if snapshot:
        snapshot.write_text(json.dumps(engine.snapshot(), indent=2), encoding="utf-8")
        console.print(f"Snapshot written to {snapshot}")

    if strict and failed:
        raise typer.Exit(code=1)


@app.command("config")
def show_config(
    env_file: Optional[Path] = typer.Option(None, "--env-file", "-e", help=".env file with DAO_* overrides"),
):
    """Show the effective governance configuration."""
    console = Console()
    config = _load_config(console, env_file)

    table = Table(title="Governance Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in config.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)


def main():
    app()


if __name__ == "__main__":
    main()
