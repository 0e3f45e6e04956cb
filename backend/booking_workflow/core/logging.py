import logging

from .config import settings

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Root handler for the API process (uvicorn keeps its own loggers)."""
    lvl = (level or settings.LOG_LEVEL or "INFO").upper()
    logging.basicConfig(level=getattr(logging, lvl, logging.INFO), format=_FORMAT)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
