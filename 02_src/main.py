"""Main entry point for the AnimeHub backend."""

import uvicorn
from dotenv import load_dotenv

from animehub.api import create_fastapi_app
from animehub.app import Application
from animehub.config import PROJECT_ROOT, Settings
from animehub.logging_config import setup_logging


def main():
    """Run the application."""
    load_dotenv(PROJECT_ROOT / ".env")

    settings = Settings.from_env()
    setup_logging(log_level=settings.log_level)

    app = create_fastapi_app(Application(settings=settings))

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
