from datetime import datetime, timezone

import pytest
from sqlmodel import Session, SQLModel, select

import simple_posts_backend.db as db
import simple_posts_backend.cli as cli
from simple_posts_backend.cli import seed
from simple_posts_backend.main import parse_day
from simple_posts_backend.models import Post

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "url,expected",
    [
        ("postgres://u:p@host/db", "postgresql+psycopg://u:p@host/db"),
        ("postgresql://u:p@host/db", "postgresql+psycopg://u:p@host/db"),
        ("postgresql+psycopg://u:p@host/db", "postgresql+psycopg://u:p@host/db"),
        ("sqlite:///posts.db", "sqlite:///posts.db"),
    ],
)
def test_normalize_database_url(url, expected):
    assert db.normalize_database_url(url) == expected


def test_engine_requires_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setattr(db, "ENGINE", None)
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        db.get_engine()


def test_postgres_engine_uses_bounded_tls_pool(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgres://u:p@db.example.com:5432/blog")
    monkeypatch.setenv("DB_POOL_SIZE", "4")
    monkeypatch.delenv("DATABASE_SSLMODE", raising=False)
    monkeypatch.setattr(db, "ENGINE", None)

    engine = db.get_engine()
    try:
        assert engine.url.drivername == "postgresql+psycopg"
        assert engine.pool.size() == 4
        assert db.get_engine() is engine
    finally:
        db.reset_engine_for_tests()


def test_create_and_read_back(engine):
    created = db.create_post(title="t", content="c", author="a")
    assert created.ok
    post_id = created.rows[0]["id"]

    found = db.get_post_by_id(post_id)
    assert found.rowcount == 1
    assert found.rows[0]["title"] == "t"


def test_mutations_report_affected_rows(engine):
    post_id = db.create_post(title="t", content="c", author="a").rows[0]["id"]

    assert db.update_post(post_id, title="x", content="y", author="z").rowcount == 1
    assert db.update_post(post_id + 1, title="x", content="y", author="z").rowcount == 0
    assert db.delete_posts_by_author("a").rowcount == 0
    assert db.delete_posts_by_author("z").rowcount == 1
    assert db.delete_post(post_id).rowcount == 0


def test_driver_error_becomes_result_error(engine):
    SQLModel.metadata.drop_all(engine)

    result = db.get_all_posts()
    assert not result.ok
    assert result.rows == []
    assert "no such table" in result.error


def test_posts_between_is_half_open(engine):
    utc = timezone.utc
    with Session(engine) as session:
        for day in (1, 2, 3):
            session.add(Post(title=str(day), content="c", author="a", created_at=datetime(2024, 5, day, tzinfo=utc)))
        session.commit()

    result = db.get_posts_between(datetime(2024, 5, 1, tzinfo=utc), datetime(2024, 5, 3, tzinfo=utc))
    assert sorted(r["title"] for r in result.rows) == ["1", "2"]


def test_parse_day():
    assert parse_day("2024-01-31") == datetime(2024, 1, 31, tzinfo=timezone.utc)
    assert parse_day("2024-01-31T10:30:00+00:00") == datetime(2024, 1, 31, 10, 30, tzinfo=timezone.utc)
    assert parse_day("yesterday") is None


def test_seed_inserts_sample_posts(engine):
    seed()
    with Session(engine) as session:
        authors = [p.author for p in session.exec(select(Post)).all()]
    assert sorted(authors) == ["alice", "alice", "bob"]


def test_start_api_passes_log_level_to_uvicorn(monkeypatch):
    calls = []
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.setattr(cli.uvicorn, "run", lambda *args, **kwargs: calls.append(kwargs))

    cli.start_api()

    assert calls[0]["log_level"] == "warning"
    assert calls[0]["reload"] is True
