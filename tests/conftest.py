import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from taskflow.database import Base, get_db
from taskflow.main import create_app
from taskflow.models import Project, User
from taskflow.security import create_access_token, get_password_hash

TEST_DATABASE_URL = "sqlite://"
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def db_session() -> Session:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def app():
    application = create_app()

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def make_user(db_session: Session):
    def _make_user(name: str, email: str = None, password: str = "secret123") -> User:
        user = User(
            name=name,
            email=email or f"{name.lower()}@example.com",
            password_hash=get_password_hash(password),
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_project(db_session: Session):
    def _make_project(owner: User, name: str = "Demo Project", **kwargs) -> Project:
        project = Project.create(owner_id=owner.id, name=name, **kwargs)
        db_session.add(project)
        db_session.commit()
        return project

    return _make_project


def auth_headers(user: User, socket_id: str = None) -> dict:
    headers = {"Authorization": f"Bearer {create_access_token(user.id)}"}
    if socket_id:
        headers["X-Socket-Id"] = socket_id
    return headers


@pytest.fixture
def headers_for():
    return auth_headers
