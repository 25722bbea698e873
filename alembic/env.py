"""Migration environment for the marketplace schema.

The database URL comes from ``-x url=...`` when given, otherwise from
``Settings.DATABASE_URL``. SQLite databases (the local default) migrate in
batch mode because SQLite cannot ALTER most column properties in place.
"""

import asyncio
import sys
from pathlib import Path

# alembic may be run from outside the repo root
_repo_root = str(Path(__file__).resolve().parents[1])
if _repo_root not in sys.path:
    sys.path.insert(0, _repo_root)

from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import create_async_engine

from alembic import context

from marketplace.core.config import settings
from marketplace.core.database import Base
from marketplace.models.user import User, Shop  # noqa: F401
from marketplace.models.service import Service  # noqa: F401
from marketplace.models.order import Order  # noqa: F401
from marketplace.models.appointment import Appointment, RecurringAppointment  # noqa: F401
from marketplace.models.payment import Payment  # noqa: F401
from marketplace.models.wallet import Wallet, Transaction  # noqa: F401
from marketplace.models.notification import Notification  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    return context.get_x_argument(as_dictionary=True).get("url") or settings.DATABASE_URL


def _configure(**kwargs) -> None:
    url = _database_url()
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=url.startswith("sqlite"),
        **kwargs,
    )


def run_offline() -> None:
    """Emit SQL to stdout instead of connecting."""
    _configure(url=_database_url(), literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_online() -> None:
    engine = create_async_engine(_database_url(), poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_migrate)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    asyncio.run(run_online())
