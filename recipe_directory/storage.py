from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

from .models import Recipe, User


class DirectoryRepository(Protocol):
    """Protocol describing the document store used by the service layer.

    Implementations persist already validated documents. Lookups of a missing
    identity raise :class:`~recipe_directory.errors.NotFoundError`; failures of
    the store itself raise :class:`~recipe_directory.errors.StorageError`.
    """

    def ping(self) -> None:
        """Perform a cheap read to prove the store is reachable."""

    def add_user(self, *, name: str, email: str) -> User:
        """Persist a user, raising ``ValidationError`` if the email is taken."""

    def get_users(self, user_ids: Iterable[str]) -> Dict[str, User]:
        """Return the users that exist among ``user_ids`` keyed by id."""

    def count_users(self) -> int:
        """Return the number of stored users."""

    def add_recipe(self, fields: Mapping[str, Any]) -> Recipe:
        """Persist a new recipe and return the stored instance."""

    def get_recipe(self, recipe_id: str) -> Recipe:
        """Return a single recipe or raise ``NotFoundError`` if missing."""

    def update_recipe(self, recipe_id: str, fields: Mapping[str, Any]) -> Recipe:
        """Overwrite the given fields and return the new representation."""

    def increment_views(self, recipe_id: str) -> Recipe:
        """Atomically add one view and return the post-increment recipe."""

    def archive_recipe(self, recipe: Recipe) -> None:
        """Write a copy of ``recipe`` stamped with the archival time."""

    def delete_recipe(self, recipe_id: str) -> None:
        """Remove a recipe, raising ``NotFoundError`` if nothing was removed."""

    def list_recipes(self, *, author: Optional[str] = None) -> List[Recipe]:
        """Return all recipes, or only those written by ``author``."""

    def count_recipes(self) -> int:
        """Return the number of stored recipes."""

    def top_recipe_by_views(self, *, descending: bool = True) -> Optional[Recipe]:
        """Return the most (or least) viewed recipe, or ``None`` when empty."""


__all__ = ["DirectoryRepository"]
