from __future__ import annotations

import typer
import questionary
from questionary import Choice, Style

from . import console

_SELECT_STYLE = Style(
    [
        ("pointer", "ansiyellow bold"),
        ("selected", "ansicyan bold"),
        ("highlighted", "ansicyan bold"),
        ("instruction", "ansiblack"),
    ]
)


def confirm_choice(message: str, *, default: bool = False) -> bool:
    choices = [
        Choice(title="Yes", value=True),
        Choice(title="No", value=False),
    ]
    try:
        result = questionary.select(
            message,
            choices=choices,
            default=default,
            use_shortcuts=False,
            pointer="▶",
            style=_SELECT_STYLE,
        ).ask()
    except KeyboardInterrupt:
        _abort_interactive()
    if result is None:
        _abort_interactive()
    return bool(result)


class TerminalPrompts:
    """Operator-facing prompt source for the configuration wizard."""

    def text(self, key: str, label: str, default: str) -> str:
        if default:
            return typer.prompt(label, default=default)
        return typer.prompt(label, default="", show_default=False)

    def secret(self, key: str, label: str, *, required: bool = False) -> str:
        while True:
            value = typer.prompt(label, default="", show_default=False, hide_input=True)
            if value or not required:
                return value
            console.err(f"{label} cannot be empty.")

    def confirm(self, key: str, label: str, default: bool) -> bool:
        return confirm_choice(label, default=default)


def _abort_interactive() -> None:
    console.err("Aborted by user.")
    raise typer.Exit(code=1)
