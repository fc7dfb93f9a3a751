"""Alembic environment configuration.

Reads the database URL from booking_contracts.config and registers all
models so autogenerate can detect schema changes.
"""
from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context

from booking_contracts.config import settings
from booking_contracts.database import Base

# Import all models so they register with Base.metadata
from booking_contracts.models.user import User  # noqa: F401
from booking_contracts.models.booking import Booking  # noqa: F401
from booking_contracts.models.contract import Contract  # noqa: F401
from booking_contracts.models.contract_version import ContractVersion  # noqa: F401
from booking_contracts.models.contract_edit_request import ContractEditRequest  # noqa: F401
from booking_contracts.models.contract_signature import ContractSignature  # noqa: F401
from booking_contracts.models.audit_log import AuditLog  # noqa: F401
from booking_contracts.models.conversation import Conversation, ConversationMessage  # noqa: F401

config = context.config
config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
