"""Status worker entry point (HTTP server + in-process scheduler)."""

import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

# .env must be loaded before settings are first imported
load_dotenv(Path(__file__).parent.parent.parent / ".env")


def main():
    from upvotes_api.config.settings import settings

    uvicorn.run(
        "upvotes_worker.server.app:app",
        host=settings.host,
        port=int(os.getenv("PORT", settings.port)),
        reload=os.getenv("RELOAD", "false").lower() == "true",
        log_level=settings.log_level.lower(),
        access_log=False,
    )


if __name__ == "__main__":
    main()
