import logging
import sys
from typing import TextIO


class Log:
    """Centralized logging with structured format.

    Keyword arguments are rendered after the message as ``key=value`` pairs,
    e.g. ``Log.info("Page recognized", document_id=doc_id, page=2)``.
    """

    _logger: logging.Logger = logging.getLogger("textlens")
    _handler: logging.Handler | None = None

    @classmethod
    def configure(cls, log_level: str, stream: TextIO = sys.stdout) -> None:
        """Configure the logger with the specified level and a stream handler."""
        cls._logger.setLevel(log_level.upper())
        if cls._handler is None:
            cls._handler = logging.StreamHandler(stream)
            cls._handler.setFormatter(
                logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
            )
            cls._logger.addHandler(cls._handler)

    @classmethod
    def info(cls, message: str, **fields: object) -> None:
        cls._logger.info(cls._render(message, fields))

    @classmethod
    def warning(cls, message: str, **fields: object) -> None:
        cls._logger.warning(cls._render(message, fields))

    @classmethod
    def error(cls, message: str, **fields: object) -> None:
        cls._logger.error(cls._render(message, fields))

    @classmethod
    def exception(cls, message: str, **fields: object) -> None:
        """Log an error together with the traceback of the exception being handled."""
        cls._logger.exception(cls._render(message, fields))

    @classmethod
    def debug(cls, message: str, **fields: object) -> None:
        cls._logger.debug(cls._render(message, fields))

    @staticmethod
    def _render(message: str, fields: dict[str, object]) -> str:
        if not fields:
            return message
        pairs = " ".join(f"{key}={value}" for key, value in fields.items())
        return f"{message} {pairs}"
