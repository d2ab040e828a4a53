import logging
import os

import uvicorn


def main():
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "3000"))
    log_level = os.getenv("LOG_LEVEL", "info").lower()
    logging.basicConfig(level=log_level.upper())
    uvicorn.run("simple_posts_backend.main:app", host=host, port=port, log_level=log_level)


if __name__ == "__main__":
    main()
