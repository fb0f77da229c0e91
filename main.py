"""Entry point: headless incident service (FastAPI) on port 8000."""

import logging

from cosaif.bootstrap import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


def main():
    """Launch Uvicorn; the app bootstraps the pipeline on startup."""
    import uvicorn
    from cosaif.web.app import app

    logger.info("Starting incident service on http://127.0.0.1:8000")
    uvicorn.run(app, host="127.0.0.1", port=8000, log_level="info")


if __name__ == "__main__":
    main()
