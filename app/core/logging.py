import logging

from app.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = None) -> None:
    """Configure root logging once for the process (uvicorn keeps its own handlers)."""
    logging.basicConfig(level=level or settings.log_level, format=LOG_FORMAT)
    # SQL echo stays off unless explicitly raised
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
