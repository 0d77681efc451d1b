import os
from datetime import datetime, timedelta, timezone

# point the app at throwaway stores before anything imports the config
TEST_DB_FILE = "test_hackhub.db"
TEST_DB_URL = f"sqlite:///./{TEST_DB_FILE}"
os.environ["HACKHUB_DATABASE_URL"] = TEST_DB_URL
os.environ["HACKHUB_BCRYPT_ROUNDS"] = "4"
os.environ["HACKHUB_STARTUP_RETRIES"] = "1"

import mongomock  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from hackhub.core.deps import get_db, get_docs  # noqa: E402
from hackhub.core.security import hash_password  # noqa: E402
from hackhub.db.base import Base  # noqa: E402
from hackhub.db.documents import ensure_indexes  # noqa: E402
from hackhub.main import app  # noqa: E402
from hackhub.models.enrollment import Enrollment, EnrollmentStatus  # noqa: E402
from hackhub.models.event import Event, EventMode  # noqa: E402
from hackhub.models.user import User, UserRole  # noqa: E402

PASSWORD = "password123"

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create a fresh schema once for the whole test session."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if os.path.exists(TEST_DB_FILE):
        os.remove(TEST_DB_FILE)


@pytest.fixture(autouse=True)
def seed_data():
    """Seed a clean minimal dataset for each test and hand back the ids."""
    db = TestingSessionLocal()
    try:
        # Clear tables (child -> parent)
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()

        users = {
            "organizer": User(name="Olivia Organizer", email="organizer1@example.com", role=UserRole.ORGANIZER),
            "organizer2": User(name="Oscar Organizer", email="organizer2@example.com", role=UserRole.ORGANIZER),
            "judge": User(name="Judy Judge", email="judge1@example.com", role=UserRole.JUDGE),
            "alice": User(name="Alice", email="alice@example.com", role=UserRole.PARTICIPANT),
            "bob": User(name="Bob", email="bob@example.com", role=UserRole.PARTICIPANT),
            "carol": User(name="Carol", email="carol@example.com", role=UserRole.PARTICIPANT),
        }
        hashed = hash_password(PASSWORD)
        for user in users.values():
            user.hashed_password = hashed
        db.add_all(users.values())
        db.commit()

        start = datetime.now(timezone.utc) + timedelta(days=7)
        hackathon = Event(
            organizer_id=users["organizer"].id,
            name="Spring Hack",
            description="48 hours of building",
            theme="Climate",
            mode=EventMode.ONLINE,
            start_date=start,
            end_date=start + timedelta(days=2),
            max_team_size=2,
        )
        other = Event(
            organizer_id=users["organizer2"].id,
            name="Autumn Jam",
            theme="Games",
            mode=EventMode.OFFLINE,
            start_date=start + timedelta(days=30),
            end_date=start + timedelta(days=32),
            max_team_size=4,
        )
        db.add_all([hackathon, other])
        db.commit()

        # alice and bob registered for the spring event up front
        db.add_all(
            [
                Enrollment(event_id=hackathon.id, user_id=users["alice"].id, status=EnrollmentStatus.ENROLLED),
                Enrollment(event_id=hackathon.id, user_id=users["bob"].id, status=EnrollmentStatus.ENROLLED),
            ]
        )
        db.commit()

        ids = {name: user.id for name, user in users.items()}
        ids["event"] = hackathon.id
        ids["other_event"] = other.id
        yield ids
    finally:
        db.close()


@pytest.fixture()
def docs():
    """In-memory MongoDB standing in for the document store."""
    database = mongomock.MongoClient()["hackhub_test"]
    ensure_indexes(database)
    return database


@pytest.fixture()
def client(docs):
    """Test client that uses the test DB session and mock document store."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_docs] = lambda: docs
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


def login(client, email: str, password: str = PASSWORD) -> str:
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["data"]["access_token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def headers(client, seed_data):
    """``headers("alice")`` logs the seeded user in once and returns auth headers."""
    emails = {
        "organizer": "organizer1@example.com",
        "organizer2": "organizer2@example.com",
        "judge": "judge1@example.com",
        "alice": "alice@example.com",
        "bob": "bob@example.com",
        "carol": "carol@example.com",
    }
    cache: dict[str, dict] = {}

    def _headers(name: str) -> dict:
        if name not in cache:
            cache[name] = auth_header(login(client, emails[name]))
        return cache[name]

    return _headers
