from threading import Lock

from sqlalchemy import DateTime, Integer, bindparam, create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from clinic_backend.core import config
from clinic_backend.scheduling.slots import slot_key


DATABASE_URL = config.DATABASE_URL

connect_args = {'check_same_thread': False} if DATABASE_URL.startswith('sqlite') else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_appointment_schema_checked = False


def _backfill_slot_keys(connection) -> int:
    """Give active rows written before the slot key existed their grid cell."""
    rows = connection.execute(
        text(
            "SELECT id, scheduled_at FROM appointments "
            "WHERE slot_key IS NULL AND status IN ('pending', 'confirmed')"
        ).columns(id=Integer, scheduled_at=DateTime)
    ).all()

    update = text('UPDATE appointments SET slot_key = :slot_key WHERE id = :id').bindparams(
        bindparam('slot_key', type_=DateTime),
    )
    for appointment_id, scheduled_at in rows:
        connection.execute(update, {'slot_key': slot_key(scheduled_at), 'id': appointment_id})

    return len(rows)


def ensure_appointment_schema() -> None:
    """Bring an existing appointments table up to the current booking layout.

    Older tables predate the slot key column and its unique index, which back
    up the in-process booking lock when several workers share one database.
    Active rows found without a slot key get one before the index is built.
    """
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('reason', 'ALTER TABLE appointments ADD COLUMN reason VARCHAR'),
            ('slot_key', 'ALTER TABLE appointments ADD COLUMN slot_key TIMESTAMP'),
            ('created_at', 'ALTER TABLE appointments ADD COLUMN created_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            _backfill_slot_keys(connection)
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_doctor_time ON appointments(doctor_id, scheduled_at)')
            )
            connection.execute(
                text('CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_doctor_slot ON appointments(doctor_id, slot_key)')
            )

        _appointment_schema_checked = True
