import pytest

from humhub_provision import manifest
from humhub_provision.errors import HostError

COMPOSE = """\
services:
  traefik:
    image: traefik:v3.0
    command:
      - --providers.docker=true
      - --certificatesresolvers.letsencrypt.acme.email=${LE_EMAIL}
      # - --certificatesresolvers.letsencrypt.acme.caserver=https://acme-staging-v02.api.letsencrypt.org/directory
      - --certificatesresolvers.letsencrypt.acme.storage=/letsencrypt/acme.json
    volumes:
      - ./data/traefik/letsencrypt:/letsencrypt
      - /var/run/docker.sock:/var/run/docker.sock:ro
  mariadb:
    image: mariadb:11
    volumes:
      - type: bind
        source: ./data/db-data
        target: /var/lib/mysql
      - named-volume:/data
"""


def test_toggle_on_then_off_restores_bytes() -> None:
    on, found = manifest.toggle_staging(COMPOSE, True)
    assert found
    assert (
        "      - --certificatesresolvers.letsencrypt.acme.caserver="
        "https://acme-staging-v02.api.letsencrypt.org/directory\n"
    ) in on
    off, _ = manifest.toggle_staging(on, False)
    assert off == COMPOSE


def test_toggle_changes_only_the_directive_line() -> None:
    on, _ = manifest.toggle_staging(COMPOSE, True)
    before = COMPOSE.splitlines()
    after = on.splitlines()
    changed = [i for i, (a, b) in enumerate(zip(before, after)) if a != b]
    assert len(before) == len(after)
    assert len(changed) == 1


def test_toggle_is_noop_when_already_in_state() -> None:
    content, found = manifest.toggle_staging(COMPOSE, False)
    assert found
    assert content == COMPOSE


def test_toggle_reports_missing_directive() -> None:
    content, found = manifest.toggle_staging("services: {}\n", True)
    assert not found
    assert content == "services: {}\n"


def test_toggle_keeps_crlf_line_endings() -> None:
    text = "a: 1\r\n    #- --certificatesresolvers.letsencrypt.acme.caserver=https://x/y\r\nb: 2\r\n"
    on, _ = manifest.toggle_staging(text, True)
    assert on.splitlines(keepends=True)[1].endswith("\r\n")
    assert on.splitlines(keepends=True)[2] == "b: 2\r\n"


def test_apply_staging_toggle_writes_file(tmp_path) -> None:
    path = tmp_path / "docker-compose.yml"
    path.write_text(COMPOSE, encoding="utf-8")
    assert manifest.apply_staging_toggle(path, True)
    assert "# - --certificatesresolvers" not in path.read_text(encoding="utf-8")


def test_find_bind_mounts_short_and_long_syntax() -> None:
    mounts = manifest.find_bind_mounts(COMPOSE)
    sources = [(m.service, m.source) for m in mounts]
    assert sources == [
        ("traefik", "./data/traefik/letsencrypt"),
        ("traefik", "/var/run/docker.sock"),
        ("mariadb", "./data/db-data"),
    ]


def test_mounts_of_resolves_relative_sources(tmp_path) -> None:
    path = tmp_path / "docker-compose.yml"
    path.write_text(
        COMPOSE + "  extra:\n    image: x\n    volumes:\n      - ./data/traefik/letsencrypt/acme.json:/acme.json\n",
        encoding="utf-8",
    )
    marker = tmp_path / "data" / "traefik" / "letsencrypt" / "acme.json"
    found = manifest.mounts_of(path, marker)
    assert [m.service for m in found] == ["extra"]
    assert manifest.mounts_of(path, tmp_path / "nothing") == []


def test_invalid_yaml_raises_host_error() -> None:
    with pytest.raises(HostError):
        manifest.find_bind_mounts("services: [unclosed\n")
