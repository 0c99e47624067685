"""Terminal prompts and output: arrow-key menus, checkboxes, spinners, summaries.

Rendering uses rich Live panels; keys are read with readchar. Ctrl+C and Esc
inside any prompt raise UserCancelled.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass

import readchar
from rich.align import Align
from rich.console import Console, Group
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table
from rich.text import Text

from skills_installer.core import applier
from skills_installer.core.catalog import LAZY_DESCRIPTION
from skills_installer.errors import CatalogFetchError, EmptySelectionError, UserCancelled
from skills_installer.models import (
    ItemDescriptor,
    ItemMetadata,
    Operation,
    ResourceKind,
    TargetOutcome,
)

console = Console()
err_console = Console(stderr=True)

TITLE = "AI Agent Skills & Subagents Installer"

SELECTED = "◉"
UNSELECTED = "○"
EXPANDED = "▼"
COLLAPSED = "▶"
CURSOR = "❯"
UPDATE_FLAG = "(update)"

PAGE_SIZE = 15
DESCRIPTION_WIDTH = 240

PHASE_LABELS = {
    applier.INITIALIZING: "Initializing sparse clone...",
    applier.FETCHING: "Fetching repository history...",
    applier.CONFIGURING: "Configuring sparse-checkout...",
    applier.CHECKING_OUT: "Checking out files...",
    applier.PULLING: "Pulling latest changes...",
    applier.APPLYING: "Applying changes...",
    applier.DONE: "Done!",
}


# ─── Keys ───────────────────────────────────────────────────────────────


def get_key() -> str:
    """Read one keypress and name it. Ctrl+C raises UserCancelled."""
    try:
        key = readchar.readkey()
    except KeyboardInterrupt as e:
        raise UserCancelled() from e

    if key == readchar.key.UP:
        return "up"
    if key == readchar.key.DOWN:
        return "down"
    if key == readchar.key.LEFT:
        return "left"
    if key == readchar.key.RIGHT:
        return "right"
    if key in (readchar.key.ENTER, "\r", "\n"):
        return "enter"
    if key == readchar.key.SPACE:
        return "space"
    if key == readchar.key.ESC:
        return "escape"
    return key.lower() if len(key) == 1 else key


# ─── Text helpers ───────────────────────────────────────────────────────


def first_sentence(text: str) -> str:
    """Return text up to and including its first sentence terminator."""
    text = " ".join(text.split())
    match = re.search(r"^.*?[.!?](?=\s|$)", text)
    return match.group(0) if match else text


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max(0, max_length - 1)].rstrip() + "…"


# ─── Output ─────────────────────────────────────────────────────────────


def show_banner() -> None:
    console.print()
    console.print(Align.center(Text(f"🔧 {TITLE}", style="bold bright_cyan")))
    console.print()


def show_error(message: str) -> None:
    err_console.print(f"\n[red]❌ Error:[/red] {escape(message)}\n")


def show_outcome(outcome: TargetOutcome, names: dict[str, str], out: Console | None = None) -> None:
    """Print the per-target summary of what changed."""
    out = out or console
    kind = outcome.kind
    title = kind.plural.capitalize()
    verb = "installed" if outcome.operation is Operation.MATERIALIZE else "updated"
    rule = "═" * 50

    def label(identifier: str) -> str:
        return escape(names.get(identifier, identifier))

    out.print(f"\n{rule}")
    out.print(f"[green]✅ {title} {verb} successfully![/green]")
    out.print(rule)
    out.print(f"\n📁 Location: {escape(str(outcome.path))}")

    count = len(outcome.selected)
    noun = kind.label if count == 1 else kind.plural
    out.print(f"\n📦 Installed {noun} ({count}):")
    updated = set(outcome.updated)
    for identifier in outcome.selected:
        if identifier in outcome.diff.added:
            out.print(f"   [green]+[/green] {label(identifier)} [dim](added)[/dim]")
        elif identifier in updated:
            out.print(f"   [yellow]↑[/yellow] {label(identifier)} [dim](updated)[/dim]")
        else:
            out.print(f"   • {label(identifier)}")
    for identifier in outcome.diff.removed:
        out.print(f"   [red]-[/red] {label(identifier)} [dim](removed)[/dim]")

    if outcome.gitignored:
        out.print("\n🙈 Added to .gitignore")
    out.print(f"\n🚀 Your AI agent will automatically discover these {kind.plural}.")
    out.print(rule + "\n")


class PhaseReporter:
    """Progress sink that drives a spinner and prints completed phases."""

    def __init__(self, message: str, out: Console | None = None):
        self._console = out or console
        self._status = self._console.status(message, spinner="dots")
        self._current: str | None = None

    def __enter__(self) -> "PhaseReporter":
        self._status.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._status.stop()
        if exc_type is not None and self._current not in (None, applier.DONE):
            self._console.print(f"   [red]✗[/red] {PHASE_LABELS.get(self._current, self._current)}")

    def on_phase(self, name: str) -> None:
        if self._current is not None and self._current != applier.DONE:
            self._console.print(f"   [green]✓[/green] {PHASE_LABELS.get(self._current, self._current)}")
        self._current = name
        self._status.update(PHASE_LABELS.get(name, name))


# ─── Checkbox state ─────────────────────────────────────────────────────


@dataclass
class _Row:
    value: str
    label: str
    description: str = ""
    flag: str = ""


class _Checklist:
    """Cursor, checked and expanded state for a multi-select list."""

    def __init__(self, rows: list[_Row], checked: set[str]):
        self.rows = rows
        self.cursor = 0
        self.checked = {row.value for row in rows if row.value in checked}
        self.expanded: set[str] = set()
        self.message = ""

    @property
    def current(self) -> _Row:
        return self.rows[self.cursor]

    def move(self, step: int) -> None:
        # No wrap-around, like a pageable list
        self.cursor = max(0, min(len(self.rows) - 1, self.cursor + step))

    def toggle(self) -> None:
        value = self.current.value
        if value in self.checked:
            self.checked.discard(value)
        else:
            self.checked.add(value)

    def toggle_all(self) -> None:
        if len(self.checked) == len(self.rows):
            self.checked.clear()
        else:
            self.checked = {row.value for row in self.rows}

    def selection(self) -> list[str]:
        """Checked values in display order."""
        values = [row.value for row in self.rows if row.value in self.checked]
        if not values:
            raise EmptySelectionError()
        return values

    def window(self, size: int) -> range:
        start = max(0, min(self.cursor - size // 2, len(self.rows) - size))
        return range(start, min(len(self.rows), start + size))


# ─── Prompter ───────────────────────────────────────────────────────────


class TerminalPrompter:
    """Interactive prompts used by the install workflow."""

    def __init__(self, out: Console | None = None, read_key: Callable[[], str] = get_key):
        self.console = out or console
        self._read_key = read_key

    # Generic widgets

    def select_one(self, title: str, options: list[tuple[str, str]], default: int = 0) -> str:
        """Arrow-key single choice. options are (value, label) pairs."""
        index = default

        def render() -> Panel:
            table = Table.grid(padding=(0, 1))
            table.add_column(width=2)
            table.add_column()
            for i, (_, label) in enumerate(options):
                if i == index:
                    table.add_row(f"[cyan]{CURSOR}[/cyan]", f"[cyan]{escape(label)}[/cyan]")
                else:
                    table.add_row(" ", escape(label))
            table.add_row("", "")
            table.add_row("", "[dim]↑/↓ navigate · Enter select · Esc cancel[/dim]")
            return Panel(table, title=f"[bold]{escape(title)}[/bold]", border_style="cyan", padding=(1, 2))

        with Live(render(), console=self.console, transient=True, auto_refresh=False) as live:
            while True:
                key = self._read_key()
                if key == "up":
                    index = (index - 1) % len(options)
                elif key == "down":
                    index = (index + 1) % len(options)
                elif key == "enter":
                    break
                elif key == "escape":
                    raise UserCancelled()
                live.update(render(), refresh=True)

        value, label = options[index]
        self.console.print(f"[green]?[/green] {escape(title)} [cyan]{escape(label)}[/cyan]")
        return value

    def checklist(
        self,
        title: str,
        rows: list[_Row],
        checked: set[str],
        empty_message: str,
        load_description: Callable[[str], str] | None = None,
    ) -> list[str]:
        """Multi-select with optional expandable descriptions."""
        state = _Checklist(rows, checked)

        def render() -> Panel:
            table = Table.grid(padding=(0, 1))
            table.add_column(width=1)
            table.add_column(width=1)
            table.add_column(width=1)
            table.add_column()
            for i in state.window(PAGE_SIZE):
                row = state.rows[i]
                is_current = i == state.cursor
                cursor = f"[cyan]{CURSOR}[/cyan]" if is_current else " "
                mark = f"[green]{SELECTED}[/green]" if row.value in state.checked else UNSELECTED
                arrow = ""
                if load_description is not None:
                    arrow = EXPANDED if row.value in state.expanded else COLLAPSED
                label = f"[cyan]{escape(row.label)}[/cyan]" if is_current else escape(row.label)
                if row.flag:
                    label += f" [yellow]{escape(row.flag)}[/yellow]"
                table.add_row(cursor, mark, f"[dim]{arrow}[/dim]", label)
                if row.value in state.expanded:
                    table.add_row("", "", "", f"[dim]{escape(row.description)}[/dim]")

            flagged = sum(1 for row in state.rows if row.flag == UPDATE_FLAG)
            footer = f"{len(state.checked)} selected"
            if flagged:
                footer += f" ({flagged} to update)"
            hints = "↑/↓ navigate · Space toggle · A toggle all · Enter confirm · Esc cancel"
            if load_description is not None:
                hints = "↑/↓ navigate · Space toggle · →/← expand/collapse · A toggle all · Enter confirm · Esc cancel"
            parts = [table, Text(""), Text(footer, style="bold"), Text(hints, style="dim")]
            if state.message:
                parts.append(Text(state.message, style="red"))
            return Panel(Group(*parts), title=f"[bold]{escape(title)}[/bold]", border_style="cyan", padding=(1, 2))

        with Live(render(), console=self.console, transient=True, auto_refresh=False) as live:
            while True:
                key = self._read_key()
                state.message = ""
                if key == "up":
                    state.move(-1)
                elif key == "down":
                    state.move(1)
                elif key == "space":
                    state.toggle()
                elif key == "a":
                    state.toggle_all()
                elif key == "right" and load_description is not None:
                    row = state.current
                    if row.value not in state.expanded:
                        state.expanded.add(row.value)
                        if not row.description or row.description == LAZY_DESCRIPTION:
                            row.description = "Loading..."
                            live.update(render(), refresh=True)
                            row.description = load_description(row.value)
                elif key == "left":
                    state.expanded.discard(state.current.value)
                elif key == "enter":
                    try:
                        selection = state.selection()
                    except EmptySelectionError:
                        state.message = empty_message
                    else:
                        break
                elif key == "escape":
                    raise UserCancelled()
                live.update(render(), refresh=True)

        labels = {row.value: row.label for row in rows}
        chosen = ", ".join(labels[value] for value in selection)
        self.console.print(f"[green]?[/green] {escape(title)} [cyan]{escape(truncate(chosen, 120))}[/cyan]")
        return selection

    def ask_text(self, prompt: str) -> str:
        while True:
            try:
                answer = Prompt.ask(f"[green]?[/green] {escape(prompt)}", console=self.console)
            except (KeyboardInterrupt, EOFError) as e:
                raise UserCancelled() from e
            if answer.strip():
                return answer.strip()
            self.console.print("[red]Please enter a valid path[/red]")

    def confirm(self, prompt: str, default: bool = True) -> bool:
        try:
            return Confirm.ask(f"[green]?[/green] {escape(prompt)}", default=default, console=self.console)
        except (KeyboardInterrupt, EOFError) as e:
            raise UserCancelled() from e

    # Workflow prompts

    def choose_kind(self) -> ResourceKind:
        value = self.select_one(
            "What would you like to install?",
            [
                (ResourceKind.SKILL.value, "Skills"),
                (ResourceKind.SUBAGENT.value, "Subagents"),
            ],
        )
        return ResourceKind(value)

    def choose_targets(self, kind: ResourceKind, options: list[tuple[str, str]], preselected: set[str]) -> list[str]:
        """Pick one or more install locations; returns paths as typed/listed."""
        custom = "__custom__"
        rows = [_Row(value=path, label=label) for path, label in options]
        rows.append(_Row(value=custom, label="Custom path..."))
        if not preselected and options:
            preselected = {options[0][0]}
        chosen = self.checklist(
            f"Where would you like to install the {kind.plural}?",
            rows,
            preselected,
            empty_message="Please select at least one location",
        )
        paths = [value for value in chosen if value != custom]
        if custom in chosen:
            paths.append(self.ask_text("Enter custom installation path:"))
        return paths

    def confirm_gitignore(self, install_path: str) -> bool:
        return self.confirm(f'Add "{install_path}" to .gitignore?', default=True)

    def choose_items(
        self,
        kind: ResourceKind,
        items: list[ItemDescriptor],
        preselected: set[str],
        needs_update: set[str],
        load_description: Callable[[str], ItemMetadata],
    ) -> list[str]:
        """Checkbox over catalog items with lazy descriptions and update flags."""
        rows = [
            _Row(
                value=item.identifier,
                label=item.display_name,
                description=item.description,
                flag=UPDATE_FLAG if item.identifier in needs_update else "",
            )
            for item in items
        ]
        by_value = {row.value: row for row in rows}

        def describe(identifier: str) -> str:
            try:
                metadata = load_description(identifier)
            except CatalogFetchError as e:
                return f"Could not load description: {e}"
            if metadata.name:
                by_value[identifier].label = metadata.name
            return truncate(first_sentence(metadata.description), DESCRIPTION_WIDTH) or "No description available"

        title = f"Select {kind.plural} to install:"
        if preselected:
            title = f"Select {kind.plural} to keep installed:"
        return self.checklist(
            title,
            rows,
            preselected,
            empty_message=f"Please select at least one {kind.label} to install",
            load_description=describe,
        )

    # Workflow output

    def status(self, message: str):
        return self.console.status(message, spinner="dots")

    def progress(self, message: str) -> PhaseReporter:
        return PhaseReporter(message, self.console)

    def info(self, message: str) -> None:
        self.console.print(escape(message))

    def outcome(self, outcome: TargetOutcome, names: dict[str, str]) -> None:
        show_outcome(outcome, names, self.console)
