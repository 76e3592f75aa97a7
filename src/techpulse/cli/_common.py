"""Helpers shared by the CLI command groups."""

from __future__ import annotations

from techpulse.core.config import load_config, resolve_db_path
from techpulse.db.repository import Repository


def open_repo() -> Repository:
    cfg = load_config()
    return Repository(resolve_db_path(cfg.db_path))
