"""Alembic environment for the trip plan schema.

The database URL comes from app settings (DATABASE_URL, then POSTGRES_URL),
never from alembic.ini.
"""

from logging.config import fileConfig

from alembic import context

from backend.app.config import get_settings
from backend.app.db.engine import create_engine_from_settings
from backend.app.db.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

settings = get_settings()


def run_migrations_offline() -> None:
    """Emit migration SQL to stdout without connecting."""
    context.configure(
        url=settings.database_url or settings.postgres_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against the configured database.

    Raises:
        ValueError: If DATABASE_URL is unset or still the placeholder
    """
    engine = create_engine_from_settings(settings)

    try:
        with engine.connect() as connection:
            context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)

            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
