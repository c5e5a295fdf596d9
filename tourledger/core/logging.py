import logging

from tourledger.core.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Set up root logging once for the process."""
    settings = get_settings()
    resolved = (level or settings.log_level or "INFO").upper()
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger("tourledger").setLevel(resolved)
    # SQL echo is controlled by the engine, keep the sqlalchemy logger quiet otherwise
    if not settings.debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
