"""Programmatic Alembic upgrades for the issue store."""

from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config

PROJECT_ROOT = Path(__file__).resolve().parents[3]


def build_alembic_config(db_path: Path) -> Config:
    config = Config(str(PROJECT_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    config.set_main_option("sqlalchemy.url", f"sqlite:///{db_path}")
    return config


def upgrade_head(db_path: Path, *, revision: str = "head") -> None:
    """Bring the SQLite database at ``db_path`` to ``revision``, creating its directory."""

    db_path.parent.mkdir(parents=True, exist_ok=True)
    command.upgrade(build_alembic_config(db_path), revision)
