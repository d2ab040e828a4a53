import logging
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def _load_env_local():
    # backend/src/simple_posts_backend/cli.py -> parents[2] == backend/
    backend_root = Path(__file__).resolve().parents[2]
    env_file = backend_root / ".env.local"
    if env_file.exists():
        load_dotenv(env_file, override=False)


def seed():
    _load_env_local()
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "info").upper())
    from .db import init_db, create_post
    init_db()
    for title, content, author in [
        ("Hello world", "The first post on this blog.", "alice"),
        ("A walk by the lake", "Sunny and quiet this morning.", "bob"),
        ("Lunch", "Vegan curry, would cook again.", "alice"),
    ]:
        result = create_post(title=title, content=content, author=author)
        if not result.ok:
            raise SystemExit(f"Seeding failed: {result.error}")
    logger.info("Seeded 3 posts.")


def start_api():
    _load_env_local()
    log_level = os.getenv("LOG_LEVEL", "info").lower()
    logging.basicConfig(level=log_level.upper())

    src_dir = Path(__file__).resolve().parents[1]  # .../backend/src
    uvicorn.run(
        "simple_posts_backend.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "3000")),
        reload=True,
        reload_dirs=[str(src_dir)],
        log_level=log_level,
    )
