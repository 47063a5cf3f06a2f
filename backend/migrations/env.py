"""
Alembic environment - runs migrations against DATABASE_URL.

Uses the same engine settings and model metadata as the application so
`alembic upgrade head` and the running service always agree on the schema.
"""

from alembic import context

from attendance_tracker.database import Base, engine
from attendance_tracker.models import AttendanceRecord, Student  # noqa: F401 (registers tables)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=str(engine.url),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
