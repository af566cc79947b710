from __future__ import annotations

import logging
from pathlib import Path
from threading import Lock

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

from .config import get_settings
from .db import engine

logger = logging.getLogger(__name__)
_run_lock = Lock()
_has_run = False


def alembic_config() -> Config:
    project_root = Path(__file__).resolve().parents[1]
    cfg = Config(str(project_root / "alembic.ini"))
    cfg.set_main_option("script_location", str(project_root / "alembic"))
    cfg.set_main_option("sqlalchemy.url", get_settings().database_url)
    return cfg


def head_revision(cfg: Config | None = None) -> str | None:
    return ScriptDirectory.from_config(cfg or alembic_config()).get_current_head()


def current_revision() -> str | None:
    with engine.connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()


def run_migrations_once() -> None:
    """Bring the schema to head once per process; a no-op when already there."""
    global _has_run
    if _has_run:
        return

    with _run_lock:
        if _has_run:
            return

        cfg = alembic_config()
        current, head = current_revision(), head_revision(cfg)
        if current == head:
            logger.info("Database schema already at %s", head)
        else:
            logger.info("Upgrading database schema %s -> %s", current or "<empty>", head)
            command.upgrade(cfg, "head")
        _has_run = True
