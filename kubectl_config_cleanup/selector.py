"""Interactive selection of contexts to remove."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from kubectl_config_cleanup.errors import SelectionError
from kubectl_config_cleanup.kubeconfig import NamedContext, dump_yaml

logger = logging.getLogger(__name__)
console = Console(stderr=True)

HEADER = (
    "Select contexts to remove. "
    "Users and clusters that they reference will also be removed."
)
ABORT_WORDS = ("q", "quit", "exit")
CONFIRM_WORDS = ("y", "yes")
PREVIEW_PREFIX = "?"


def context_preview(ctx: NamedContext) -> str:
    """Render a context definition as YAML for preview."""
    return dump_yaml(ctx.definition)


def display_contexts(contexts: list[NamedContext], current_context: Optional[str] = None) -> None:
    """
    Display contexts in a table format.

    Args:
        contexts: Contexts in selection order
        current_context: Name of the active context (for highlighting)
    """
    table = Table(title="Kubeconfig Contexts", show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Context", style="green")
    table.add_column("Cluster")
    table.add_column("User")
    table.add_column("Namespace", style="dim")
    table.add_column("Current", justify="center", width=8)

    for idx, ctx in enumerate(contexts, 1):
        is_current = ctx.name == current_context
        status = "[bold green]*[/bold green]" if is_current else ""
        table.add_row(
            str(idx),
            escape(ctx.name),
            escape(ctx.cluster) or "[red]-[/red]",
            escape(ctx.user) or "[red]-[/red]",
            escape(ctx.namespace),
            status,
        )

    console.print(table)


def parse_selection_token(token: str, contexts: list[NamedContext]) -> Optional[NamedContext]:
    token = token.strip()
    if not token:
        return None

    if token.isdigit():
        idx = int(token)
        if 1 <= idx <= len(contexts):
            return contexts[idx - 1]

    for ctx in contexts:
        if token == ctx.name:
            return ctx

    for ctx in contexts:
        if token.lower() == ctx.name.lower():
            return ctx

    matches = [ctx for ctx in contexts if token.lower() in ctx.name.lower()]
    if len(matches) == 1:
        return matches[0]

    return None


def is_exact_token(token: str, ctx: NamedContext, contexts: list[NamedContext]) -> bool:
    token = token.strip()
    if token == ctx.name:
        return True
    if token.isdigit():
        idx = int(token)
        return 1 <= idx <= len(contexts) and contexts[idx - 1] is ctx
    return False


def _read_input(prompt: str, input_func: Callable[[], str]) -> Optional[str]:
    try:
        console.print(prompt, end="", markup=False)
        return input_func().strip()
    except (KeyboardInterrupt, EOFError):
        console.print("\n[yellow]Operation cancelled.[/yellow]")
        return None
    except OSError as exc:
        raise SelectionError(f"Interactive selection failed: {exc}") from exc


def _confirm_matches(
    matches: list[tuple[str, str]], input_func: Callable[[], str]
) -> Optional[bool]:
    """Ask before removing contexts picked by a partial or case-insensitive name."""
    console.print("\n[yellow]These names were matched loosely:[/yellow]")
    for token, name in matches:
        console.print(f"  {escape(token)} -> [bold]{escape(name)}[/bold]")
    answer = _read_input("Remove them? [y/N]: ", input_func)
    if answer is None:
        return None
    return answer.lower() in CONFIRM_WORDS


def _show_preview(token: str, contexts: list[NamedContext]) -> None:
    ctx = parse_selection_token(token, contexts)
    if ctx is None:
        console.print(f"[red]No context matches: {escape(token)}[/red]")
        return
    source = escape(str(ctx.source))
    console.print(f"\n[bold cyan]{escape(ctx.name)}[/bold cyan] [dim]({source})[/dim]")
    console.print(escape(context_preview(ctx)), highlight=False)


def select_contexts(
    contexts: list[NamedContext],
    current_context: Optional[str] = None,
    input_func: Callable[[], str] = input,
) -> Optional[list[str]]:
    """
    Prompt the user to pick contexts to remove.

    Returns:
        Selected context names, or None when the user aborted
    """
    if not contexts:
        console.print("[yellow]No contexts found in kubeconfig.[/yellow]")
        return None

    display_contexts(contexts, current_context)
    console.print(f"\n[bold]{HEADER}[/bold]", highlight=False)

    while True:
        console.print(
            "\n[cyan]Enter context numbers/names (comma or space separated)[/cyan]",
            highlight=False,
        )
        console.print(
            "[dim]Example: [/dim]"
            "[bold green]1,3[/bold green]"
            "[dim] or [/dim]"
            "[bold green]all[/bold green]"
            "[dim]; [/dim]"
            "[bold green]?2[/bold green]"
            "[dim] previews a context; [/dim]"
            "[bold green]'q'[/bold green]"
            "[dim] quits[/dim]\n"
        )

        raw_input = _read_input("Selection: ", input_func)
        if raw_input is None:
            return None

        if not raw_input:
            console.print("[yellow]No selection made.[/yellow]")
            return None

        if raw_input.lower() in ABORT_WORDS:
            logger.info("User cancelled selection")
            return None

        if raw_input.startswith(PREVIEW_PREFIX):
            _show_preview(raw_input[len(PREVIEW_PREFIX):], contexts)
            continue

        parts = [part for part in raw_input.replace(",", " ").split() if part.strip()]
        if not parts:
            console.print("[yellow]No selection made.[/yellow]")
            return None

        if any(part.lower() == "all" for part in parts):
            return [ctx.name for ctx in contexts]

        selected: list[str] = []
        invalid: list[str] = []
        loose: list[tuple[str, str]] = []

        for part in parts:
            ctx = parse_selection_token(part, contexts)
            if ctx is None:
                invalid.append(part)
                continue
            if not is_exact_token(part, ctx, contexts):
                loose.append((part, ctx.name))
            if ctx.name not in selected:
                selected.append(ctx.name)

        if invalid:
            console.print(f"[red]Invalid selection(s): {escape(', '.join(invalid))}[/red]")
            continue

        if loose:
            confirmed = _confirm_matches(loose, input_func)
            if confirmed is None:
                return None
            if not confirmed:
                continue

        return selected
