# display.py
# All terminal output for the press/release demo.
#
# This module owns presentation entirely. press.py never formats strings;
# run.py calls named functions here. Swap this file to change the entire UI.
#
# Colour language:
#   cyan     routing / ledger events
#   yellow   encryption and verification checkpoints
#   green    success / confirmed
#   red      failures, halts, integrity breaches

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from cipher_press.models import PathEvent, PressReceipt

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    if len(value) > max_len:
        return value[:max_len] + "…"
    return value


def _short(node_hash: str) -> str:
    return f"{node_hash[:10]}…{node_hash[-6:]}"


# ---------------------------------------------------------------------------
# Pipeline entry
# ---------------------------------------------------------------------------


def banner(public_key: str, max_workers: int) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Cipher Press[/bold cyan]\n"
            "[dim]Content-addressed character trees, sealed per node with ECIES[/dim]\n\n"
            f"[dim]Recipient key:[/dim] [white]{_mono(public_key, 40)}[/white]\n"
            f"[dim]Workers      :[/dim] [white]{max_workers}[/white]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def press_start(text: str) -> None:
    console.print()
    console.print(Rule("[cyan]PRESS[/cyan]", style="cyan"))
    console.print(
        Panel(
            f"[white]{text}[/white]",
            title=_label("INPUT", "cyan"),
            border_style="cyan",
            padding=(0, 2),
        )
    )


# ---------------------------------------------------------------------------
# Ledger events
# ---------------------------------------------------------------------------


def path_events(events: list[PathEvent]) -> None:
    table = Table(
        box=box.SIMPLE_HEAVY,
        border_style="cyan",
        show_header=True,
        header_style="bold cyan",
        padding=(0, 1),
    )
    table.add_column("Index", justify="center", width=6)
    table.add_column("Kind", width=6)
    table.add_column("Hash", style="bold white")
    table.add_column("Components", style="dim white")

    for event in events:
        kind = "leaf" if event.is_leaf else "pair"
        components = "—" if event.is_leaf else f"{_short(event.left)}  {_short(event.right)}"
        table.add_row(str(event.index), kind, _short(event.hash), components)

    console.print(
        Panel(
            table,
            title=_label("LEDGER: PATH EVENTS", "cyan"),
            subtitle=f"[dim]{len(events)} node(s)[/dim]",
            border_style="cyan",
            padding=(0, 1),
        )
    )


def press_complete(receipt: PressReceipt) -> None:
    console.print(
        f"  [bold green]✓ Sealed {receipt.node_count} node(s)[/bold green]  "
        f"[dim]root {receipt.final_hash}[/dim]"
    )


# ---------------------------------------------------------------------------
# Release
# ---------------------------------------------------------------------------


def release_start(final_hash: str) -> None:
    console.print()
    console.print(Rule("[yellow]RELEASE[/yellow]", style="yellow"))
    console.print(
        f"  [yellow]↳ Walking and decrypting tree[/yellow] [dim yellow]{final_hash}[/dim yellow]…"
    )


def release_complete(text: str, expected: str) -> None:
    if text == expected:
        console.print(
            Panel(
                f"[white]{text}[/white]",
                title=_label("RELEASED ✓", "green"),
                border_style="green",
                padding=(0, 2),
            )
        )
        return

    console.print(
        Panel(
            f"[bold red]Released text does not match the input.[/bold red]\n\n"
            f"[dim]expected[/dim] [white]{expected!r}[/white]\n"
            f"[dim]got     [/dim] [white]{text!r}[/white]",
            title=_label("MISMATCH ✗", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------


def receipt_summary(receipts: list[PressReceipt]) -> None:
    console.print()
    table = Table(
        box=box.SIMPLE_HEAVY,
        border_style="dim",
        show_header=True,
        header_style="bold dim",
        padding=(0, 1),
    )
    table.add_column("Request", width=14)
    table.add_column("Nodes", justify="center", width=7)
    table.add_column("Root", style="dim white")

    for receipt in receipts:
        table.add_row(receipt.request_id[:12], str(receipt.node_count), receipt.final_hash)

    console.print(
        Panel(
            table,
            title="[dim]RECEIPTS[/dim]",
            border_style="dim",
            padding=(0, 1),
        )
    )


def halt(reason: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold white]{reason}[/bold white]",
            title=_label("HALT", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )
    console.print()
