"""Custom exceptions raised by the agent script converter."""

from __future__ import annotations

from typing import Iterable, List


class ConversionError(RuntimeError):
    """Base error for all conversion related exceptions."""


class InputShapeError(ConversionError):
    """Raised when the input document cannot be read as a recognized shape."""

    def __init__(self, message: str, errors: Iterable[str] | None = None) -> None:
        self.errors: List[str] = list(errors or [])
        if self.errors:
            message = f"{message}: " + "; ".join(self.errors)
        super().__init__(message)
