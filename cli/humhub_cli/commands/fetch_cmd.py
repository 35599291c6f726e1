from __future__ import annotations

import typer

from humhub_provision.errors import HostError
from humhub_provision.fetch import companion_url, fetch_file
from humhub_provision.layout import CHECKER_SCRIPT_NAME, MANIFEST_NAME, HostLayout

from .. import console
from ..config import load_config, resolve_repo_base

# name -> file mode
COMPANION_FILES = {
    MANIFEST_NAME: None,
    CHECKER_SCRIPT_NAME: 0o755,
}


def fetch(
    base_dir: str | None = typer.Option(None, "--base-dir", help="Installation root (default from settings)."),
    repo_base: str | None = typer.Option(None, "--repo-base", help="Base URL the companion files are served from."),
    force: bool = typer.Option(False, "--force", help="Re-download files that already exist."),
):
    """Download the compose manifest and checker script into the installation root."""
    settings = load_config()
    layout = HostLayout(base_dir or settings.base_dir)
    base = (repo_base or resolve_repo_base(settings)).rstrip("/")

    console.info(f"Creating base directory at: {layout.root}")
    layout.root.mkdir(parents=True, exist_ok=True)

    for name, mode in COMPANION_FILES.items():
        dest = layout.root / name
        if dest.exists() and not force:
            console.info(f"Keeping existing {dest} (use --force to replace).")
            continue
        try:
            fetch_file(companion_url(base, name), dest, mode=mode)
        except HostError as exc:
            console.err(str(exc))
            raise typer.Exit(code=2)
        console.ok(f"Downloaded {dest}")

    console.print("")
    console.print("Next steps:")
    console.print("  1. Prepare the host (interactive):")
    console.print(f"       sudo humhub-host prepare --base-dir {layout.root}")
    console.print("  2. Verify installation readiness:")
    console.print(f"       sudo humhub-host check --base-dir {layout.root}")
