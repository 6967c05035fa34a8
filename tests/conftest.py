# flake8: noqa
import os
import sys
from pathlib import Path

# Settings are read at import time, so the environment goes first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-sessions")
os.environ.setdefault("MEDIA_BACKEND", "local")

# Ensure project root is on sys.path so `recipeshare` imports without install
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))  # noqa: E402

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from recipeshare import app as app_module
from recipeshare import crud, schemas
from recipeshare.db import Base
from recipeshare.media import LocalMediaHost, Upload, get_media


PASSWORD = "pa55word"


@pytest.fixture
def engine():
    # StaticPool so the same in-memory database is shared across connections
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def media(tmp_path):
    return LocalMediaHost(tmp_path / "media", base_url="/media", folder="test")


@pytest.fixture
def app(session_factory, media):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app_module.app.dependency_overrides[app_module.get_db] = override_get_db
    app_module.app.dependency_overrides[get_media] = lambda: media
    yield app_module.app
    app_module.app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_client(app):
    """Separate clients keep separate session cookies."""
    def _make(**kwargs):
        return TestClient(app, **kwargs)
    return _make


def make_user(db, username):
    return crud.create_user(
        db,
        schemas.UserCreate(username=username, email=f"{username}@example.com", password=PASSWORD),
    )


@pytest.fixture
def alice(db_session):
    return make_user(db_session, "alice")


@pytest.fixture
def bob(db_session):
    return make_user(db_session, "bob")


def login(client, username, password=PASSWORD, return_to=""):
    return client.post(
        "/login",
        data={"username": username, "password": password, "return_to": return_to},
        follow_redirects=False,
    )


def make_recipe(db, author, title="Soup", images=(), ingredients=None):
    payload = schemas.RecipeCreate(
        title=title,
        instruction="Boil",
        ingredients=ingredients if ingredients is not None else [{"name": "Salt", "unit": "tsp"}],
    )
    return crud.create_recipe(db, payload, author.id, list(images))


def make_review(db, recipe, author, body="Lovely"):
    return crud.create_review(db, recipe.id, schemas.ReviewCreate(body=body), author.id)


def stored(media, name="a.jpg", data=b"\xff\xd8jpeg"):
    return media.upload(Upload(name, "image/jpeg", data))


