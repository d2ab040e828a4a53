from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

from dotenv import load_dotenv, find_dotenv
load_dotenv(find_dotenv())

from fastapi import Body, FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import db
from .db import QueryResult


logger = logging.getLogger(__name__)

# fields are not validated; missing ones reach the NOT NULL columns as None
POST_BODY = Body(default={})


@asynccontextmanager
async def lifespan(app: FastAPI):
    db.init_db()
    version = db.server_version()
    if version.ok:
        logger.info("Connected to %s", version.rows[0]["version"])
    else:
        logger.warning("Could not read database version: %s", version.error)
    yield


app = FastAPI(
    title="Simple Posts",
    description="CRUD REST API over a single posts table.",
    lifespan=lifespan,
)

DEFAULT_STATIC = Path(__file__).resolve().parent / "static"
STATIC_DIR = Path(os.getenv("STATIC_DIR", str(DEFAULT_STATIC))).resolve()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def _failure(result: QueryResult, not_found: str | None = None) -> JSONResponse | None:
    """Map a driver error to 500 and, when not_found is given, zero rows to 404."""
    if not result.ok:
        return JSONResponse(status_code=500, content={"error": result.error})
    if not_found is not None and result.rowcount == 0:
        return JSONResponse(status_code=404, content={"error": not_found})
    return None


def _validation_message(exc: RequestValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )


@app.exception_handler(RequestValidationError)
async def invalid_input(request: Request, exc: RequestValidationError):
    # malformed ids and bodies fail like any other query error
    message = _validation_message(exc)
    logger.error("Error: %s", message)
    return JSONResponse(status_code=500, content={"error": message})


def parse_day(value: str) -> datetime | None:
    """ISO date or datetime; naive values are taken as UTC. None if unparseable."""
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ----------------------------
# Posts
# ----------------------------
@app.post("/posts", summary="Create a new post")
def create_post(payload: dict = POST_BODY):
    result = db.create_post(
        title=payload.get("title"), content=payload.get("content"), author=payload.get("author")
    )
    failure = _failure(result)
    if failure is not None:
        return failure

    created = result.rows[0]
    logger.info("Post created successfully with id %s", created["id"])
    return {"status": "success", "data": created, "message": "Post created successfully"}


@app.get("/posts/author/{author_name}", summary="List posts by author")
def list_author_posts(author_name: str):
    result = db.get_posts_by_author(author_name)
    failure = _failure(result, not_found="Author not found")
    if failure is not None:
        return failure
    return result.rows


@app.get("/posts/dates/{start_date}/{end_date}", summary="List posts within a date range")
def list_posts_between(start_date: str, end_date: str):
    start = parse_day(start_date)
    end = parse_day(end_date)
    if start is None or end is None or end.date() == date.max:
        return JSONResponse(status_code=400, content={"error": "Invalid date"})

    # the end day is inclusive
    result = db.get_posts_between(start, end + timedelta(days=1))
    failure = _failure(result)
    if failure is not None:
        return failure
    if not result.rows:
        return {"message": "No posts found"}
    return result.rows


@app.get("/posts", summary="List all posts")
def list_posts():
    result = db.get_all_posts()
    if not result.ok:
        return PlainTextResponse("An error occurred", status_code=500)
    return result.rows


@app.get("/posts/{post_id}", summary="Get post by ID")
def get_post(post_id: int):
    result = db.get_post_by_id(post_id)
    failure = _failure(result, not_found="Post not found")
    if failure is not None:
        return failure
    return {"status": "success", "data": result.rows[0], "message": "Post found"}


@app.put("/posts/{post_id}", summary="Replace title, content and author of a post")
def update_post(post_id: int, payload: dict = POST_BODY):
    result = db.update_post(
        post_id, title=payload.get("title"), content=payload.get("content"), author=payload.get("author")
    )
    failure = _failure(result, not_found="Post not found")
    if failure is not None:
        return failure
    return {"status": "success", "message": "Post updated successfully"}


@app.delete("/posts/author/{author_name}", summary="Delete all posts by author")
def delete_author_posts(author_name: str):
    result = db.delete_posts_by_author(author_name)
    failure = _failure(result, not_found="Author not found")
    if failure is not None:
        return failure
    return {"status": "success", "message": "Posts deleted successfully"}


@app.delete("/posts/{post_id}", summary="Delete post by ID")
def delete_post(post_id: int):
    result = db.delete_post(post_id)
    failure = _failure(result, not_found="Post not found")
    if failure is not None:
        return failure
    return {"status": "success", "message": "Post deleted successfully"}


# ----------------------------
# Static pages
# ----------------------------
@app.get("/", include_in_schema=False)
def landing_page():
    return FileResponse(STATIC_DIR / "index.html")


@app.exception_handler(StarletteHTTPException)
async def not_found_page(request: Request, exc: StarletteHTTPException):
    # unmatched paths and methods both end on the not-found page
    if exc.status_code in (404, 405):
        return FileResponse(STATIC_DIR / "404.html", status_code=404)
    return await http_exception_handler(request, exc)
