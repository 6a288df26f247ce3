"""
Alembic environment configuration for Plansync.

The database URL comes from application settings, overriding alembic.ini.
"""

import logging
from logging.config import fileConfig

from alembic import context

from plansync.config import get_settings
from plansync.database import create_db_engine
from plansync.models.base import Base

# Every model must be imported for autogenerate to see its table
from plansync.models.planning import User, SharedSpace, SpaceMembership, Plan  # noqa: F401
from plansync.models.accounts import ConnectedAccount, RemoteCalendarRef, AccountSyncState  # noqa: F401
from plansync.models.links import PlanEventLink  # noqa: F401
from plansync.models.availability import AvailabilityBlock  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

settings = get_settings()
config.set_main_option("sqlalchemy.url", settings.database_url)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit migration SQL to the script output without connecting."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,  # SQLite needs batch mode for ALTER TABLE
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against a live connection."""
    connectable = create_db_engine(config.get_main_option("sqlalchemy.url"), for_migrations=True)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=True,
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    logger.info("Running migrations offline")
    run_migrations_offline()
else:
    logger.info("Running migrations online")
    run_migrations_online()
