from __future__ import annotations

import os
import sys
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# alembic lancé depuis la racine ou depuis storeroom/ : "storeroom.*" doit rester importable
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..")))

from storeroom.app.core.config import settings  # noqa: E402
from storeroom.app.db.base import Base  # noqa: E402
from storeroom.app.db.models import models_v1  # noqa: F401,E402  (enregistre les tables)

target_metadata = Base.metadata


def _context_options(dialect_name: str) -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "compare_server_default": True,
        # SQLite ne sait pas ALTER les contraintes : recréation de table
        "render_as_batch": dialect_name == "sqlite",
    }


def run_migrations_offline() -> None:
    # même source que l'application (env / .env), alembic.ini ne porte pas d'URL
    url = settings.DATABASE_URL
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_context_options(url.split(":", 1)[0].split("+", 1)[0]),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine(settings.DATABASE_URL, poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            context.configure(connection=connection, **_context_options(connection.dialect.name))
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
