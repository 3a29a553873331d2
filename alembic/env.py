import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

# =========================================================
# Alembic Config
# =========================================================
config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# =========================================================
# Import settings and models
# =========================================================
from secureport.config import settings  # noqa: E402
from secureport.database import Base  # noqa: E402
import secureport.models  # noqa: E402,F401  registers every table on Base.metadata

config.set_main_option("sqlalchemy.url", settings.database_url)
target_metadata = Base.metadata


# =========================================================
# Offline migrations
# =========================================================
def run_migrations_offline() -> None:
    context.configure(
        url=settings.database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


# =========================================================
# Online migrations (async engine, sync migration body)
# =========================================================
def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


# =========================================================
# Entry point
# =========================================================
if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
