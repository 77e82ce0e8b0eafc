"""Stage identifiers and the base error every stage raises on failure."""

from __future__ import annotations

from enum import Enum


class Stage(str, Enum):
    """Pipeline stages in execution order."""

    CHECKOUT = "checkout"
    ENVIRONMENT = "environment"
    RENDER = "render"
    STAMP = "stamp"
    PUBLISH = "publish"


class StageError(RuntimeError):
    """Raised when a stage cannot complete; aborts the remaining pipeline."""

    stage: Stage = Stage.CHECKOUT

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
