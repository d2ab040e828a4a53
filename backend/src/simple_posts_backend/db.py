from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy import delete, text, update
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlmodel import SQLModel, create_engine, Session, select

from .models import Post


logger = logging.getLogger(__name__)

ENGINE = None  # built lazily, shared by every request


@dataclass
class QueryResult:
    """Outcome of one statement: the rows it produced, or the driver error."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    rowcount: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def normalize_database_url(url: str) -> str:
    """Point plain Postgres URLs at the psycopg 3 driver."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def _create_engine():
    """
    Postgres URLs get a bounded pool and TLS (required unless DATABASE_SSLMODE
    says otherwise); other URLs, e.g. SQLite for local runs, use driver defaults.
    The engine is built lazily so importing the app never needs a database.
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("No database URL configured. Please set DATABASE_URL.")
    url = normalize_database_url(url)

    kwargs = {}
    if url.startswith("postgresql"):
        kwargs = {
            "pool_size": int(os.getenv("DB_POOL_SIZE", "10")),
            "max_overflow": 0,
            "connect_args": {"sslmode": os.getenv("DATABASE_SSLMODE", "require")},
        }

    return create_engine(url, echo=False, pool_pre_ping=True, **kwargs)


def get_engine():
    global ENGINE
    if ENGINE is None:
        ENGINE = _create_engine()
    return ENGINE


def reset_engine_for_tests():
    """For tests/reloads when DATABASE_URL changes."""
    global ENGINE
    if ENGINE is not None:
        ENGINE.dispose()
    ENGINE = None


def init_db():
    SQLModel.metadata.create_all(get_engine())


def _error_message(exc: SQLAlchemyError) -> str:
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig).strip()
    return str(exc)


def _run(work: Callable[[Session], QueryResult]) -> QueryResult:
    # the session holds one pooled connection until the with-block exits
    try:
        with Session(get_engine()) as session:
            result = work(session)
            session.commit()
            return result
    except SQLAlchemyError as exc:
        message = _error_message(exc)
        logger.error("Error: %s", message)
        return QueryResult(error=message)


def _rows(posts) -> QueryResult:
    rows = [p.model_dump() for p in posts]
    return QueryResult(rows=rows, rowcount=len(rows))


def server_version() -> QueryResult:
    def work(session: Session) -> QueryResult:
        version = session.exec(text("SELECT version()")).scalar_one()
        return QueryResult(rows=[{"version": version}], rowcount=1)

    return _run(work)


def create_post(title: str | None, content: str | None, author: str | None) -> QueryResult:
    def work(session: Session) -> QueryResult:
        post = Post(
            title=title,
            content=content,
            author=author,
            created_at=datetime.now(timezone.utc),
        )
        session.add(post)
        session.flush()
        return QueryResult(rows=[post.model_dump()], rowcount=1)

    return _run(work)


def get_post_by_id(post_id: int) -> QueryResult:
    return _run(lambda session: _rows(session.exec(select(Post).where(Post.id == post_id)).all()))


def get_posts_by_author(author: str) -> QueryResult:
    return _run(lambda session: _rows(session.exec(select(Post).where(Post.author == author)).all()))


def get_posts_between(start: datetime, end: datetime) -> QueryResult:
    """Posts with start <= created_at < end."""
    stmt = select(Post).where(Post.created_at >= start, Post.created_at < end)
    return _run(lambda session: _rows(session.exec(stmt).all()))


def get_all_posts() -> QueryResult:
    return _run(lambda session: _rows(session.exec(select(Post)).all()))


def _affected(stmt) -> QueryResult:
    def work(session: Session) -> QueryResult:
        return QueryResult(rowcount=session.exec(stmt).rowcount)

    return _run(work)


def update_post(post_id: int, title: str | None, content: str | None, author: str | None) -> QueryResult:
    # created_at is never updated
    stmt = (
        update(Post)
        .where(Post.id == post_id)
        .values(title=title, content=content, author=author)
    )
    return _affected(stmt)


def delete_post(post_id: int) -> QueryResult:
    return _affected(delete(Post).where(Post.id == post_id))


def delete_posts_by_author(author: str) -> QueryResult:
    return _affected(delete(Post).where(Post.author == author))
