from __future__ import annotations

from typer.testing import CliRunner

from humhub_cli import main
from humhub_cli.commands import prepare_cmd
from humhub_provision import directories, files
from humhub_provision.envfile import read_env_file
from humhub_provision.errors import FetchError
from humhub_provision.layout import HostLayout
from humhub_provision.platforms import OsInfo, RhelPlatform

from conftest import FakeRunner

COMPOSE = (
    "services:\n"
    "  traefik:\n"
    "    command:\n"
    "      # - --certificatesresolvers.letsencrypt.acme.caserver=https://acme-staging-v02.api.letsencrypt.org/directory\n"
)


def _invoke(tmp_path, *extra: str):
    runner = CliRunner()
    return runner.invoke(
        main.app,
        [
            "prepare",
            "--config-only",
            "--non-interactive",
            "--base-dir",
            str(tmp_path / "humhub"),
            "--set",
            "SMTP_RELAY_PASSWORD=relay-pass",
            *extra,
        ],
    )


def test_prepare_requires_root_for_full_run(tmp_path, settings_dir, monkeypatch) -> None:
    monkeypatch.setattr(prepare_cmd, "_is_root", lambda: False)
    result = CliRunner().invoke(main.app, ["prepare", "--base-dir", str(tmp_path), "--non-interactive"])
    assert result.exit_code == 2
    assert "Run as root" in result.output


def test_prepare_config_only_writes_env_and_install_config(tmp_path, settings_dir, monkeypatch) -> None:
    monkeypatch.setattr(prepare_cmd, "_is_root", lambda: False)
    result = _invoke(tmp_path, "--set", "HUMHUB_HOST=social.example.org")
    assert result.exit_code == 0, result.output

    layout = HostLayout(str(tmp_path / "humhub"))
    env = read_env_file(layout.env_path)
    assert env["HUMHUB_HOST"] == "social.example.org"
    assert env["HUMHUB_BASE_URL"] == "https://social.example.org"
    assert env["SMTP_RELAY_PASSWORD"] == "relay-pass"
    assert env["MARIADB_PASSWORD"]
    assert (layout.env_path.stat().st_mode & 0o777) == 0o640
    install_cfg = layout.install_config_path.read_text(encoding="utf-8")
    assert f"'{env['MARIADB_PASSWORD']}'" in install_cfg
    assert layout.acme_file.exists()
    assert "docker-compose.yml not found" in result.output


def test_prepare_rerun_preserves_secrets_and_backs_up(tmp_path, settings_dir, monkeypatch) -> None:
    monkeypatch.setattr(prepare_cmd, "_is_root", lambda: False)
    assert _invoke(tmp_path).exit_code == 0
    layout = HostLayout(str(tmp_path / "humhub"))
    first_content = layout.env_path.read_text(encoding="utf-8")
    first = read_env_file(layout.env_path)

    result = CliRunner().invoke(
        main.app,
        ["prepare", "--config-only", "--non-interactive", "--base-dir", str(layout.root)],
    )
    assert result.exit_code == 0, result.output

    second = read_env_file(layout.env_path)
    assert second == first
    backups = sorted(layout.root.glob(".env.bak.*"))
    assert len(backups) == 1
    assert backups[0].read_text(encoding="utf-8") == first_content
    assert sorted(layout.config_dir.glob("installation_config.php.bak.*"))


def test_prepare_toggles_manifest(tmp_path, settings_dir, monkeypatch) -> None:
    monkeypatch.setattr(prepare_cmd, "_is_root", lambda: False)
    layout = HostLayout(str(tmp_path / "humhub"))
    layout.root.mkdir(parents=True)
    layout.manifest_path.write_text(COMPOSE, encoding="utf-8")

    assert _invoke(tmp_path, "--set", "LE_USE_STAGING=true").exit_code == 0
    assert "# - --cert" not in layout.manifest_path.read_text(encoding="utf-8")
    assert read_env_file(layout.env_path)["LE_USE_STAGING"] == "true"

    assert _invoke(tmp_path, "--set", "LE_USE_STAGING=false").exit_code == 0
    assert layout.manifest_path.read_text(encoding="utf-8") == COMPOSE
    assert read_env_file(layout.env_path)["LE_CASERVER"] == ""


def test_prepare_rejects_unknown_override(tmp_path, settings_dir, monkeypatch) -> None:
    monkeypatch.setattr(prepare_cmd, "_is_root", lambda: False)
    result = _invoke(tmp_path, "--set", "BOGUS=1")
    assert result.exit_code == 2
    assert "Unknown configuration key: BOGUS" in result.output


def test_prepare_without_smtp_password_fails(tmp_path, settings_dir, monkeypatch) -> None:
    monkeypatch.setattr(prepare_cmd, "_is_root", lambda: False)
    result = CliRunner().invoke(
        main.app,
        ["prepare", "--config-only", "--non-interactive", "--base-dir", str(tmp_path)],
    )
    assert result.exit_code == 2
    assert "SMTP_RELAY_PASSWORD" in result.output


def test_config_only_as_root_without_account_keeps_ownership(tmp_path, settings_dir, monkeypatch) -> None:
    runner = FakeRunner(responses={("id", "nosuchuser"): (1, "")})
    monkeypatch.setattr(prepare_cmd, "_is_root", lambda: True)
    monkeypatch.setattr(prepare_cmd, "CommandRunner", lambda: runner)

    result = _invoke(tmp_path, "--user", "nosuchuser")

    assert result.exit_code == 0, result.output
    assert "User 'nosuchuser' does not exist" in result.output
    layout = HostLayout(str(tmp_path / "humhub"))
    assert layout.env_path.is_file()
    assert layout.install_config_path.is_file()


def _full_run(tmp_path, monkeypatch, runner, *, fetch_manifest_error=False):
    events = runner.calls
    monkeypatch.setattr(prepare_cmd, "_is_root", lambda: True)
    monkeypatch.setattr(prepare_cmd, "CommandRunner", lambda: runner)
    monkeypatch.setattr(prepare_cmd, "detect_platform", lambda r: RhelPlatform(OsInfo(id="rocky"), r))
    monkeypatch.setattr(directories, "_chown", lambda path, owner: events.append(["chown", str(path)]))
    monkeypatch.setattr(files, "chown_path", lambda path, owner: None)

    def fake_fetch_if_missing(url, dest, *, mode=None):
        events.append(["fetch", url])
        if fetch_manifest_error:
            raise FetchError(f"Failed to download {url}: HTTP 404")
        dest.write_text(COMPOSE, encoding="utf-8")
        return True

    def fake_fetch_file(url, dest, *, mode=None, timeout_s=30.0):
        raise FetchError(f"Failed to download {url}: HTTP 503")

    monkeypatch.setattr(prepare_cmd, "fetch_if_missing", fake_fetch_if_missing)
    monkeypatch.setattr(prepare_cmd, "fetch_file", fake_fetch_file)
    return CliRunner().invoke(
        main.app,
        [
            "prepare",
            "--non-interactive",
            "--base-dir",
            str(tmp_path / "humhub"),
            "--set",
            "SMTP_RELAY_PASSWORD=relay-pass",
        ],
    )


def _first(calls, head):
    return next(i for i, call in enumerate(calls) if call[: len(head)] == head)


def test_full_prepare_runs_steps_in_order(tmp_path, settings_dir, monkeypatch) -> None:
    runner = FakeRunner(responses={("sudo", "-u", "humhub", "docker", "ps"): (1, "")})

    result = _full_run(tmp_path, monkeypatch, runner)

    assert result.exit_code == 0, result.output
    calls = runner.calls
    order = [
        _first(calls, ["dnf", "-y", "install", "curl"]),
        _first(calls, ["systemctl", "enable", "--now", "docker"]),
        _first(calls, ["usermod", "-aG", "docker", "humhub"]),
        _first(calls, ["chown"]),
        _first(calls, ["firewall-cmd", "--permanent", "--list-services"]),
        _first(calls, ["fetch"]),
        _first(calls, ["sudo", "-u", "humhub", "docker", "ps"]),
    ]
    assert order == sorted(order)
    assert ["firewall-cmd", "--add-service=https", "--permanent"] in calls
    assert "cannot run docker yet" in result.output
    assert "Use 'humhub-host check' instead" in result.output
    assert "was just added to the docker group" in result.output
    assert result.output.rstrip().endswith("log out and back in or reboot.")
    layout = HostLayout(str(tmp_path / "humhub"))
    assert layout.env_path.is_file()
    assert "ACME CA server set to production" in result.output


def test_full_prepare_stops_when_manifest_download_fails(tmp_path, settings_dir, monkeypatch) -> None:
    runner = FakeRunner()

    result = _full_run(tmp_path, monkeypatch, runner, fetch_manifest_error=True)

    assert result.exit_code == 2
    assert "HTTP 404" in result.output
    assert not runner.called("sudo", "-u", "humhub", "docker", "ps")
    assert not HostLayout(str(tmp_path / "humhub")).env_path.exists()
