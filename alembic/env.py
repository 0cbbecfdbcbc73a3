"""
Alembic environment configuration.

Migrations are run out-of-band (``alembic upgrade head``); the application
never creates or alters tables on startup.
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import make_url
from sqlmodel import SQLModel

from app.core.config import settings
# Import all models so Alembic can detect schema changes
from app.db.base import *  # noqa

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

# Same DSN the application uses, unless the caller configured one
if not config.get_main_option("sqlalchemy.url"):
    config.set_main_option("sqlalchemy.url", settings.DATABASE_URL.replace("%", "%%"))

target_metadata = SQLModel.metadata

# SQLite cannot ALTER most constraints in place
render_as_batch = make_url(config.get_main_option("sqlalchemy.url")).get_backend_name() == "sqlite"


def run_migrations_offline() -> None:
    """Emit migration SQL to the script output without connecting."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(url=url, target_metadata=target_metadata, literal_binds=True,
                      dialect_opts={ "paramstyle": "named" }, render_as_batch=render_as_batch, )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations over a live connection."""
    connectable = engine_from_config(config.get_section(config.config_ini_section, { }), prefix="sqlalchemy.",
                                     poolclass=pool.NullPool, )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True,
                          render_as_batch=render_as_batch)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
