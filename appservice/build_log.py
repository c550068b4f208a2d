# appservice/build_log.py
"""Status/error sink that deployment steps report progress through."""
from typing import List, Tuple

from loguru import logger

STATUS = "status"
ERROR = "error"


class BuildLog:
    """Collects build output and mirrors it to loguru.

    Callers that render output elsewhere (a CI console, a web page) can
    subclass and override ``log_status``/``log_error`` or read ``lines``.
    """

    def __init__(self, name: str = "build"):
        self.name = name
        self.lines: List[Tuple[str, str]] = []

    def log_status(self, message: str) -> None:
        self.lines.append((STATUS, message))
        logger.info(f"[{self.name}] {message}")

    def log_error(self, message: str) -> None:
        self.lines.append((ERROR, message))
        logger.error(f"[{self.name}] {message}")

    @property
    def errors(self) -> List[str]:
        return [m for level, m in self.lines if level == ERROR]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)
