import asyncio
import os
import sys
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context
from dotenv import load_dotenv

# Корень проекта в sys.path, чтобы работал импорт bot
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

ENV_FILES = {"production": ".env.prod", "testing": ".env.test"}
load_dotenv(ENV_FILES.get(os.getenv("ENVIRONMENT", "development"), ".env.dev"))

# bot.config не импортируем: он требует BOT_TOKEN, миграциям он не нужен
from bot.database.models import Base

config = context.config

# ALEMBIC_URL позволяет мигрировать другую БД, не трогая DATABASE_URL бота
db_url = os.getenv("ALEMBIC_URL") or os.getenv("DATABASE_URL")
if db_url:
    config.set_main_option("sqlalchemy.url", db_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


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


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
