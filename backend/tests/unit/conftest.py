# backend/tests/unit/conftest.py
from datetime import datetime
from itertools import count

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from thrive.api.dependencies.database import get_db
from thrive.core.enums import AvailabilityKind, BookingStatus, ServiceType, SessionStatus
from thrive.database import Base

# Import models so Base.metadata is populated for create_all.
import thrive.models  # noqa: F401
from thrive.main import app
from thrive.models import (
    Booking,
    ClassSession,
    PackageAllowance,
    StripeProductMap,
    Student,
    StudentPackage,
    Teacher,
    TeacherAvailability,
    User,
)

_sequence = count(1)


@pytest.fixture(scope="session")
def _unit_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite's legacy transaction handling never emits BEGIN, which breaks
    # SAVEPOINT-based rollback; take over transaction control (SQLAlchemy recipe).
    @event.listens_for(engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def unit_db(_unit_engine) -> Session:
    """
    Provide a transactional session bound to the shared in-memory engine.

    Services commit freely; everything is rolled back when the test ends.
    """
    connection = _unit_engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(bind=connection, expire_on_commit=False, future=True)
    session = SessionLocal()
    session.begin_nested()

    @event.listens_for(session, "after_transaction_end")
    def restart_savepoint(sess, trans):
        if trans.nested and not trans._parent.nested:
            sess.begin_nested()

    try:
        yield session
    finally:
        event.remove(session, "after_transaction_end", restart_savepoint)
        session.close()
        transaction.rollback()
        connection.close()


# Factories


def _persist(db: Session, obj):
    db.add(obj)
    db.flush()
    return obj


@pytest.fixture
def make_user(unit_db):
    def _make(first_name: str = "Ada", last_name: str = "Lovelace", email: str = None) -> User:
        n = next(_sequence)
        return _persist(
            unit_db,
            User(email=email or f"user{n}@example.com", first_name=first_name, last_name=last_name),
        )

    return _make


@pytest.fixture
def make_teacher(unit_db, make_user):
    def _make(tier: int = 0, is_active: bool = True, **user_fields) -> Teacher:
        user = make_user(**user_fields)
        return _persist(unit_db, Teacher(user_id=user.id, tier=tier, is_active=is_active))

    return _make


@pytest.fixture
def make_student(unit_db, make_user):
    def _make(stripe_customer_id: str = None, **user_fields) -> Student:
        user = make_user(**user_fields)
        return _persist(
            unit_db, Student(user_id=user.id, stripe_customer_id=stripe_customer_id)
        )

    return _make


@pytest.fixture
def add_rule(unit_db):
    def _add(teacher: Teacher, weekday: int, start_minutes: int, end_minutes: int):
        return _persist(
            unit_db,
            TeacherAvailability(
                teacher_id=teacher.id,
                kind=AvailabilityKind.RECURRING.value,
                weekday=weekday,
                start_time_minutes=start_minutes,
                end_time_minutes=end_minutes,
                is_active=True,
            ),
        )

    return _add


@pytest.fixture
def add_window(unit_db):
    """Blackout or one-off availability with absolute bounds."""

    def _add(teacher: Teacher, start_at: datetime, end_at: datetime, kind: str = "BLACKOUT"):
        return _persist(
            unit_db,
            TeacherAvailability(
                teacher_id=teacher.id,
                kind=AvailabilityKind(kind).value,
                start_at=start_at,
                end_at=end_at,
                is_active=True,
            ),
        )

    return _add


@pytest.fixture
def make_session(unit_db):
    def _make(
        teacher: Teacher,
        start_at: datetime,
        end_at: datetime,
        type: str = ServiceType.PRIVATE.value,
        status: str = SessionStatus.SCHEDULED.value,
        **fields,
    ) -> ClassSession:
        return _persist(
            unit_db,
            ClassSession(
                type=type,
                teacher_id=teacher.id,
                start_at=start_at,
                end_at=end_at,
                status=status,
                capacity_max=fields.pop("capacity_max", 1),
                **fields,
            ),
        )

    return _make


@pytest.fixture
def make_booking(unit_db):
    def _make(
        session: ClassSession, student: Student, status: str = BookingStatus.CONFIRMED.value
    ) -> Booking:
        return _persist(
            unit_db, Booking(session_id=session.id, student_id=student.id, status=status)
        )

    return _make


@pytest.fixture
def make_product_map(unit_db):
    def _make(
        service_key: str = None,
        stripe_product_id: str = None,
        allowances=(),
        active: bool = True,
    ) -> StripeProductMap:
        n = next(_sequence)
        product_map = _persist(
            unit_db,
            StripeProductMap(
                service_key=service_key or f"package_{n}",
                stripe_product_id=stripe_product_id or f"prod_{n}",
                active=active,
            ),
        )
        for allowance in allowances:
            _persist(
                unit_db,
                PackageAllowance(stripe_product_map_id=product_map.id, **allowance),
            )
        unit_db.refresh(product_map)
        return product_map

    return _make


@pytest.fixture
def make_package(unit_db):
    def _make(
        student: Student,
        total_sessions: int = 5,
        metadata: dict = None,
        expires_at: datetime = None,
        product_map: StripeProductMap = None,
        **fields,
    ) -> StudentPackage:
        return _persist(
            unit_db,
            StudentPackage(
                student_id=student.id,
                stripe_product_map_id=product_map.id if product_map else None,
                package_name=fields.pop("package_name", "5 Private Classes"),
                total_sessions=total_sessions,
                expires_at=expires_at,
                extra_metadata=metadata if metadata is not None else {"service_type": "PRIVATE"},
                **fields,
            ),
        )

    return _make


@pytest.fixture
def client(unit_db):
    """Create a test client with the test database."""

    def override_get_db():
        try:
            yield unit_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(app)

    yield test_client

    app.dependency_overrides.clear()
    test_client.close()


@pytest.fixture
def auth_headers_for():
    def _headers(user_id: str) -> dict:
        return {"X-Auth-User-Id": user_id}

    return _headers
