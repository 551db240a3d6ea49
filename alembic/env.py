import sys
from pathlib import Path
from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context
from sqlmodel import SQLModel

# Executado pelo CLI do alembic a partir da raiz: o pacote `app` precisa estar no path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

# Registra tenant, account, membership, catálogo, vendas, OS, notas e financeiro
import app.model  # noqa: F401
from app.db.session import DATABASE_URL

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# DATABASE_URL (.env) tem precedência sobre o alembic.ini
config.set_main_option("sqlalchemy.url", DATABASE_URL)

target_metadata = SQLModel.metadata


def _configure_kwargs(url: str) -> dict:
    # SQLite não suporta ALTER TABLE completo: usa batch mode em ambiente local
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "compare_server_default": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline():
    """Gera o SQL das migrations sem abrir conexão (alembic upgrade --sql)."""
    context.configure(url=DATABASE_URL, literal_binds=True, **_configure_kwargs(DATABASE_URL))
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = engine_from_config(
        config.get_section(config.config_ini_section),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs(DATABASE_URL))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
