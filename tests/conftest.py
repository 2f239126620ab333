import json
from unittest.mock import MagicMock

import pytest

from app import create_app
from models import db, User, Project, Book, Chapter, ChapterStatus
from openai_handler import OpenAIHandler


TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "JWT_SECRET_KEY": "test-jwt-secret-key-that-is-long-enough-for-hs256",
    "CELERY_BROKER_URL": "memory://",
    "CELERY_RESULT_BACKEND": "cache+memory://",
    "CELERY_TASK_ALWAYS_EAGER": True,
    "LOG_LEVEL": "WARNING",
    "BCRYPT_LOG_ROUNDS": 4,
}

VALID_FEEDBACK = {
    "overallScore": 8,
    "strengths": ["Tight opening"],
    "weaknesses": ["Sagging middle"],
    "feedback": "## Overall\n\nSolid chapter.",
    "inlineHighlights": [
        {"start": 0, "end": 5, "type": "pacing", "comment": "Quick start", "severity": "minor"}
    ],
}

VALID_SUMMARY = {
    "summary": "Mara leaves the village.",
    "keyPoints": ["Mara leaves"],
    "entities": {"characters": ["Mara"], "places": ["the village"], "events": ["Departure"]},
}


class InMemoryRedis:
    """Stands in for the Redis commands the analysis lock uses."""

    def __init__(self):
        self.store = {}

    def set(self, key, value, ex=None, nx=False):
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    def get(self, key):
        return self.store.get(key)

    def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0

    def exists(self, key):
        return int(key in self.store)


def fenced(payload):
    return "```json\n" + json.dumps(payload) + "\n```"


def make_completion(text, prompt_tokens=1000, completion_tokens=500):
    response = MagicMock()
    choice = MagicMock()
    choice.message.content = text
    response.choices = [choice]
    response.usage.prompt_tokens = prompt_tokens
    response.usage.completion_tokens = completion_tokens
    return response


@pytest.fixture
def openai_client():
    client = MagicMock()
    client.chat.completions.create.side_effect = [
        make_completion(fenced(VALID_FEEDBACK)),
        make_completion(fenced(VALID_SUMMARY), prompt_tokens=800, completion_tokens=200),
    ]
    return client


@pytest.fixture
def handler(openai_client):
    return OpenAIHandler(openai_client)


@pytest.fixture
def lock_store():
    return InMemoryRedis()


@pytest.fixture
def app(handler, lock_store):
    app = create_app(dict(TEST_CONFIG), openai_handler=handler, lock_store=lock_store)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


def register(client, email="author@example.com", password="manuscript1"):
    response = client.post("/api/auth/register", json={"email": email, "password": password, "name": "Author"})
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.get_json()['accessToken']}"}


@pytest.fixture
def auth_headers(client):
    return register(client)


@pytest.fixture
def book(client, auth_headers):
    project = client.post("/api/projects", json={"name": "Saga", "genre": "fantasy"}, headers=auth_headers)
    book = client.post(
        "/api/books",
        json={"project_id": project.get_json()["id"], "number": 1, "title": "Book One"},
        headers=auth_headers,
    )
    return book.get_json()


def seed_book(genre="fantasy"):
    """Creates a user, project and book directly in the database (needs an app context)."""
    user = User(email=f"seed{User.query.count()}@example.com", name="Seed")
    user.set_password("manuscript1")
    db.session.add(user)
    db.session.flush()
    project = Project(user_id=user.id, name="Saga", genre=genre)
    db.session.add(project)
    db.session.flush()
    book = Book(project_id=project.id, number=1, title="Book One")
    db.session.add(book)
    db.session.commit()
    return book


def seed_chapter(book, number, status=ChapterStatus.PROCESSING, content="Mara left at dawn."):
    chapter = Chapter(
        book_id=book.id,
        number=number,
        title=f"Chapter {number}",
        content=content,
        word_count=len(content.split()),
        status=status.value,
    )
    db.session.add(chapter)
    db.session.commit()
    return chapter
