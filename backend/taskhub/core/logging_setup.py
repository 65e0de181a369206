import logging
import sys


class _ThirdPartyNoiseFilter(logging.Filter):
    """
    Keep taskhub logs at the configured level, but only let third-party
    loggers (sqlalchemy, uvicorn access log, ...) through at WARNING+.
    """

    def __init__(self, allow_sql: bool = False) -> None:
        super().__init__()
        self.allow_sql = allow_sql

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith("taskhub."):
            return True
        if self.allow_sql and name.startswith("sqlalchemy.engine"):
            return True
        return record.levelno >= logging.WARNING


def configure_logging(level: str = "INFO", *, sql_echo: bool = False) -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Re-running (reload, tests) must not stack handlers.
    for h in list(root.handlers):
        if getattr(h, "_taskhub_handler", False):
            root.removeHandler(h)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
    )
    handler.addFilter(_ThirdPartyNoiseFilter(allow_sql=sql_echo))
    handler._taskhub_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
