"""
Test configuration and shared fixtures for the workflow engine test suite.

Uses an in-memory SQLite database with transaction-based isolation.
Each test gets a clean database state via automatic transaction rollback.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Callable, Generator, List

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from clinic_workflow.core.database import Base
from clinic_workflow.core.constants import StaffRole, VisitStatus
from clinic_workflow.records import Diagnosis, PatientRecord, VisitRecord
from clinic_workflow.services.clinic_store import SqlAlchemyClinicStore
from clinic_workflow.services.patient_service import PatientService
from clinic_workflow.services.visit_service import VisitService

# Import all models to ensure they're registered with SQLAlchemy before the schema is created
import clinic_workflow.models  # noqa: F401


# Midday UTC keeps the calendar date stable for any reasonable CLINIC_TIMEZONE
NOW = datetime(2024, 1, 5, 12, 0, 0, tzinfo=timezone.utc)
TODAY = date(2024, 1, 5)


class FakeClock:
    """Settable clock injected into the workflow services."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(scope="session")
def db_engine():
    """
    Create a database engine for the test session.

    One in-memory database shared through StaticPool. pysqlite's own
    transaction handling is disabled so SAVEPOINT works as documented by
    SQLAlchemy.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """
    Provide a database session for a test with automatic rollback.

    The session joins an outer transaction and turns its own commits into
    savepoint releases, so application code can commit freely and the test
    still leaves no trace.
    """
    connection = db_engine.connect()
    transaction = connection.begin()
    session = Session(bind=connection, join_transaction_mode="create_savepoint")

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(db_session) -> SqlAlchemyClinicStore:
    return SqlAlchemyClinicStore(db_session)


@pytest.fixture
def patient_service(store, clock) -> PatientService:
    return PatientService(store, clock=clock)


@pytest.fixture
def visit_service(store, clock) -> VisitService:
    return VisitService(store, clock=clock)


@pytest.fixture
def make_visit() -> Callable[..., VisitRecord]:
    """Build an unsaved visit snapshot with sensible defaults."""

    def _make(**overrides) -> VisitRecord:
        values = dict(
            patient_id=1,
            date=TODAY,
            status=VisitStatus.SCHEDULED,
            created_by=StaffRole.SECRETARY,
            created_at=NOW,
            updated_at=NOW,
        )
        values.update(overrides)
        return VisitRecord(**values)

    return _make


@pytest.fixture
def make_diagnosis() -> Callable[..., Diagnosis]:
    def _make(text: str = "Common cold", **overrides) -> Diagnosis:
        values = dict(diagnosis=text, notes=f"Notes for {text}", treatment="Rest")
        values.update(overrides)
        return Diagnosis(**values)

    return _make


@pytest.fixture
def saved_patient(store) -> PatientRecord:
    """A doctor-registered patient persisted in the test database."""
    return store.save_patient(
        PatientRecord(
            name="Amina Hassan",
            phone="0100000000",
            created_by=StaffRole.DOCTOR,
            created_at=NOW - timedelta(days=30),
            updated_at=NOW - timedelta(days=30),
        )
    )


@pytest.fixture
def visits_on(store, saved_patient) -> Callable[..., List[VisitRecord]]:
    """Persist visits for the saved patient on the given dates."""

    def _create(*dates: date, status: VisitStatus = VisitStatus.SCHEDULED) -> List[VisitRecord]:
        return [
            store.save_visit(
                VisitRecord(
                    patient_id=saved_patient.id,
                    date=d,
                    status=status,
                    created_by=StaffRole.SECRETARY,
                    created_at=NOW,
                    updated_at=NOW,
                )
            )
            for d in dates
        ]

    return _create
