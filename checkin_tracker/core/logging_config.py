import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once; gunicorn/uvicorn capture stdout."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # SQLAlchemy echoes every statement at INFO when its logger inherits root.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
