from threading import Lock

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from clinic_scheduler.core import config


def _engine_options(url: str) -> dict:
    if url.startswith('sqlite'):
        return {'connect_args': {'check_same_thread': False}}
    return {'pool_pre_ping': True}


def use_immediate_transactions(target_engine) -> None:
    """Take the SQLite write lock when a transaction begins.

    pysqlite defers BEGIN until the first write, so two sessions could both
    read a slot as free before either inserts. With BEGIN IMMEDIATE the second
    session waits for the first to commit or roll back.
    """

    @event.listens_for(target_engine, 'connect')
    def _disable_driver_transactions(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target_engine, 'begin')
    def _begin_immediate(connection):
        connection.exec_driver_sql('BEGIN IMMEDIATE')


engine = create_engine(config.DATABASE_URL, **_engine_options(config.DATABASE_URL))
if engine.dialect.name == 'sqlite':
    use_immediate_transactions(engine)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_scheduling_indexes_checked = False

SCHEDULING_INDEXES = (
    ('appointments', 'CREATE INDEX IF NOT EXISTS idx_appointments_staff_range ON appointments(staff_id, start_time, end_time)'),
    ('appointments', 'CREATE INDEX IF NOT EXISTS idx_appointments_org_status ON appointments(organization_id, status)'),
    ('availability_windows', 'CREATE INDEX IF NOT EXISTS idx_availability_staff_day ON availability_windows(staff_id, day_of_week)'),
    ('transactions', 'CREATE INDEX IF NOT EXISTS idx_transactions_appointment ON transactions(appointment_id, status)'),
)

APPOINTMENT_COLUMN_STEPS = (
    ('deposit_retained', 'ALTER TABLE appointments ADD COLUMN deposit_retained BOOLEAN'),
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_scheduling_indexes() -> None:
    global _scheduling_indexes_checked

    if _scheduling_indexes_checked:
        return

    with _schema_lock:
        if _scheduling_indexes_checked:
            return

        inspector = inspect(engine)
        existing_tables = set(inspector.get_table_names())
        appointment_columns = set()
        if 'appointments' in existing_tables:
            appointment_columns = {column['name'] for column in inspector.get_columns('appointments')}

        with engine.begin() as connection:
            for column_name, statement in APPOINTMENT_COLUMN_STEPS:
                if 'appointments' in existing_tables and column_name not in appointment_columns:
                    connection.execute(text(statement))
            for table_name, statement in SCHEDULING_INDEXES:
                if table_name in existing_tables:
                    connection.execute(text(statement))

        _scheduling_indexes_checked = True


def lock_row(db: Session, model, row_id: int):
    """Load ``model`` by id holding a row lock until the transaction ends.

    On PostgreSQL this is ``SELECT ... FOR UPDATE``. SQLite ignores the clause;
    there the transaction already holds the database write lock, see
    ``use_immediate_transactions``.
    """
    return db.query(model).filter(model.id == row_id).with_for_update().first()
