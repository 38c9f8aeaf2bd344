"""Alembic environment script, driven by Flask-Migrate (``flask db upgrade``)."""

from logging.config import fileConfig
import logging

from alembic import context
from flask import current_app

config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger('alembic.env')


def get_engine():
    return current_app.extensions['migrate'].db.engine


def get_metadata():
    return current_app.extensions['migrate'].db.metadata


config.set_main_option(
    'sqlalchemy.url',
    get_engine().url.render_as_string(hide_password=False).replace('%', '%%'),
)
target_metadata = get_metadata()


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode (emit SQL, no engine)."""
    url = config.get_main_option('sqlalchemy.url')
    context.configure(url=url, target_metadata=target_metadata, literal_binds=True)

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode (with the app's engine)."""
    connectable = get_engine()

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=connection.dialect.name == 'sqlite',
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    logger.info("Running migrations in offline mode")
    run_migrations_offline()
else:
    logger.info("Running migrations in online mode")
    run_migrations_online()
