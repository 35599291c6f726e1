import os
from datetime import datetime

import pytest

from humhub_provision import files
from humhub_provision.errors import HostError


def test_backup_file_missing_returns_none(tmp_path) -> None:
    assert files.backup_file(tmp_path / "absent") is None


def test_backup_file_uses_timestamp_and_avoids_collisions(tmp_path) -> None:
    path = tmp_path / "installation_config.php"
    path.write_text("first", encoding="utf-8")
    now = datetime(2024, 1, 2, 3, 4, 5)

    one = files.backup_file(path, now=now)
    two = files.backup_file(path, now=now)

    assert one.name == "installation_config.php.bak.20240102-030405"
    assert two.name == "installation_config.php.bak.20240102-030405.1"
    assert one.read_text(encoding="utf-8") == "first"


def test_write_restricted_sets_mode_and_leaves_no_temp_files(tmp_path) -> None:
    path = tmp_path / "sub" / "secret.env"
    files.write_restricted(path, "A=1\n")

    assert path.read_text(encoding="utf-8") == "A=1\n"
    assert (path.stat().st_mode & 0o777) == 0o640
    assert sorted(os.listdir(path.parent)) == ["secret.env"]


def test_write_with_backup_keeps_exact_prior_bytes(tmp_path) -> None:
    path = tmp_path / ".env"
    original = "KEY=value with spaces\n# comment\n"
    path.write_text(original, encoding="utf-8")

    backup = files.write_with_backup(path, "KEY=other\n")

    assert backup.read_text(encoding="utf-8") == original
    assert path.read_text(encoding="utf-8") == "KEY=other\n"


def test_write_restricted_unknown_owner_raises_and_cleans_up(tmp_path) -> None:
    path = tmp_path / ".env"
    with pytest.raises(HostError, match="Cannot set owner"):
        files.write_restricted(path, "A=1\n", owner="no-such-user-hh")
    assert list(tmp_path.iterdir()) == []
