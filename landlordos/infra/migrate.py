from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config

from landlordos.infra.db import DATABASE_URL

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "infra" / "migrations"


def build_config() -> Config:
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    config.set_main_option("sqlalchemy.url", DATABASE_URL)
    return config


def run_upgrade_head() -> None:
    command.upgrade(build_config(), "head")


if __name__ == "__main__":
    run_upgrade_head()
