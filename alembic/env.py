"""
Alembic environment for the stays schema.

The database URL and schema name come from sync_stays.config, so migrations run
against the same DATABASE_URL / DB_SCHEMA as the service. Only tables of that
schema are compared during autogenerate.
"""

from logging.config import fileConfig
from typing import Any

from sqlalchemy import engine_from_config, pool
from sqlalchemy.schema import CreateSchema

from alembic import context  # type: ignore[attr-defined]
from sync_stays.config import DATABASE_URL, SCHEMA
from sync_stays.models.registry import metadata

config = context.config
config.set_main_option("sqlalchemy.url", DATABASE_URL)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def include_object(object_: Any, name: str, type_: str, reflected: bool, compare_to: Any) -> bool:
    """Skip anything outside the stays schema (other apps share the database)."""
    return getattr(object_, "schema", SCHEMA) == SCHEMA


def _configure(**options: Any) -> None:
    context.configure(
        target_metadata=metadata,
        include_schemas=True,
        include_object=include_object,
        version_table_schema=SCHEMA,
        compare_type=True,
        **options,
    )


def run_migrations_offline() -> None:
    """Emit migration SQL to the script output without a database connection."""
    _configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations over a live connection, creating the schema first."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        # alembic_version lives in SCHEMA, so the schema has to exist first
        connection.execute(CreateSchema(SCHEMA, if_not_exists=True))
        connection.commit()
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
