"""Shared pytest fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
import yaml
from rich.console import Console

from chanindex.db.connection import Database
from chanindex.db.repository import Repository
from chanindex.db.schema import initialize


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / "index.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


class BackupBuilder:
    """Writes a <day>/<item>/metadata*.json backup tree under *root*."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    def item_dir(self, day: str, item: str) -> Path:
        path = self.root / day / item
        path.mkdir(parents=True, exist_ok=True)
        return path

    def message(
        self,
        day: str,
        item: str,
        message_id: int,
        *,
        text: str | None = "",
        date: str = "2023-05-01T10:00:00+00:00",
        media: dict[str, Any] | None = None,
        name: str | None = None,
        **extra: Any,
    ) -> Path:
        data: dict[str, Any] = {"id": message_id, "date": date, "message": text, "media": media}
        data.update(extra)
        path = self.item_dir(day, item) / (name or f"metadata_{message_id}.json")
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    def payload(self, day: str, item: str, file_id: int, ext: str = ".jpg") -> Path:
        path = self.item_dir(day, item) / f"{file_id}{ext}"
        path.write_bytes(b"\x00payload")
        return path


@pytest.fixture
def channel_backup(tmp_path) -> BackupBuilder:
    return BackupBuilder(tmp_path / "mychannel_1001")


@pytest.fixture
def discussion_backup(tmp_path) -> BackupBuilder:
    return BackupBuilder(tmp_path / "mychat_2002")


@pytest.fixture
def workdir(tmp_path, monkeypatch) -> Path:
    """CWD for CLI tests: chanindex.yaml stores indexes under tmp_path/data, no global config."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("chanindex.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    (tmp_path / "chanindex.yaml").write_text(
        yaml.dump({"storage": {"data_dir": str(tmp_path / "data")}}), encoding="utf-8"
    )

    # Wide console so long tmp paths do not wrap assertions apart.
    wide = Console(width=300)
    for module in ("common", "index", "recognize", "search", "status"):
        monkeypatch.setattr(f"chanindex.cli.{module}.console", wide)
    return tmp_path
