from __future__ import annotations

import typer

from .commands import check_cmd, fetch_cmd, install_config_cmd, prepare_cmd, settings_cmd
from .logging_ import setup_logging


def _build_app() -> typer.Typer:
    app = typer.Typer(
        name="humhub-host",
        help="Prepare and verify a host for the HumHub container stack.",
        no_args_is_help=True,
    )

    app.command("prepare")(prepare_cmd.prepare)
    app.command("check")(check_cmd.check)
    app.command("fetch")(fetch_cmd.fetch)
    app.command("install-config")(install_config_cmd.install_config)
    app.add_typer(settings_cmd.app, name="settings")

    @app.callback()
    def _main(
            verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logs."),
    ):
        setup_logging(verbose)

    return app


app = _build_app()
