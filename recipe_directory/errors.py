from __future__ import annotations

from typing import Dict, Optional


class RecipeDirectoryError(Exception):
    """Base class for errors raised by the recipe directory."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(RecipeDirectoryError):
    """Input is missing or violates a field constraint."""

    def __init__(self, message: str, violations: Optional[Dict[str, str]] = None) -> None:
        super().__init__(message)
        self.violations = dict(violations or {})

    @classmethod
    def from_violations(cls, entity: str, violations: Dict[str, str]) -> "ValidationError":
        details = ", ".join(f"{name}: {problem}" for name, problem in sorted(violations.items()))
        return cls(f"{entity} validation failed: {details}", violations)


class NotFoundError(RecipeDirectoryError, KeyError):
    """An identity did not resolve to a stored document."""

    def __str__(self) -> str:
        return self.message


class StorageError(RecipeDirectoryError):
    """The document store rejected or failed an operation."""


__all__ = ["NotFoundError", "RecipeDirectoryError", "StorageError", "ValidationError"]
