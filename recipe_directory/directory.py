"""Recipe directory operations.

:class:`RecipeDirectory` holds the repository handle and implements every
operation exposed over HTTP. Documents are validated here, before they reach
the store, so any :class:`~recipe_directory.storage.DirectoryRepository`
implementation receives only well formed data.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Mapping, Optional

from .errors import NotFoundError, ValidationError
from .models import (
    Analytics,
    Recipe,
    User,
    normalize_recipe_fields,
    validate_recipe,
    validate_user,
)
from .storage import DirectoryRepository

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")


class RecipeDirectory:
    """Service object wrapping a :class:`DirectoryRepository`."""

    def __init__(self, storage: DirectoryRepository) -> None:
        self.storage = storage

    # Users

    def create_user(self, name: Any, email: Any) -> User:
        if not name or not email:
            raise ValidationError("Name and Email are required.")

        violations = validate_user({"name": name, "email": email})
        if violations:
            raise ValidationError.from_violations("User", violations)

        user = self.storage.add_user(name=name, email=email)
        logger.info("Created user %s", user.id)
        return user

    # Recipes

    def create_recipe(self, data: Mapping[str, Any]) -> Recipe:
        fields = normalize_recipe_fields(data)
        fields.pop("views", None)

        violations = validate_recipe(fields)
        if violations:
            raise ValidationError.from_violations("Recipe", violations)

        recipe = self.storage.add_recipe(fields)
        logger.info("Created recipe %s for author %s", recipe.id, recipe.author)
        return recipe

    def update_recipe(self, recipe_id: str, data: Mapping[str, Any]) -> Recipe:
        """Overwrite the supplied fields of a recipe.

        The merged document is validated before anything is written, so a
        rejected update leaves the stored recipe untouched.
        """
        current = self.storage.get_recipe(recipe_id)
        changes = normalize_recipe_fields(data)

        merged = current.fields()
        merged.update(changes)
        violations = validate_recipe(merged)
        if violations:
            raise ValidationError.from_violations("Recipe", violations)

        if not changes:
            return current
        return self.storage.update_recipe(recipe_id, changes)

    def delete_recipe(self, recipe_id: str) -> None:
        """Archive a recipe and then delete it.

        The archive copy is written whenever the lookup finds the recipe. The
        two steps are not atomic: if another request removes the recipe in
        between, the archive entry stays and this call reports
        :class:`NotFoundError`.
        """
        try:
            recipe = self.storage.get_recipe(recipe_id)
        except NotFoundError:
            recipe = None

        if recipe is not None:
            self.storage.archive_recipe(recipe)
            logger.info("Archived recipe %s", recipe_id)

        self.storage.delete_recipe(recipe_id)
        logger.info("Deleted recipe %s", recipe_id)

    def list_recipes(self, title: Optional[str] = None) -> List[Dict[str, Any]]:
        recipes = self.storage.list_recipes()
        if title:
            needle = title.casefold()
            recipes = [recipe for recipe in recipes if needle in recipe.title.casefold()]

        authors = self.storage.get_users(recipe.author for recipe in recipes)
        return [
            recipe.to_dict(author=_summary(authors.get(recipe.author))) for recipe in recipes
        ]

    def get_recipe(self, recipe_id: str) -> Dict[str, Any]:
        recipe = self.storage.increment_views(recipe_id)
        author = self.storage.get_users([recipe.author]).get(recipe.author)
        return recipe.to_dict(author=author.to_dict() if author else None)

    def increment_view(self, recipe_id: str) -> int:
        return self.storage.increment_views(recipe_id).views

    def recipes_by_user(self, user_id: str) -> List[Recipe]:
        return self.storage.list_recipes(author=user_id)

    def total_views_by_user(self, user_id: str) -> int:
        return sum(recipe.views for recipe in self.storage.list_recipes(author=user_id))

    def most_viewed_by_user(self, user_id: str) -> Recipe:
        recipes = self.storage.list_recipes(author=user_id)
        if not recipes:
            raise NotFoundError("No recipes found")
        # max() keeps the first of equal candidates, so ties follow store order.
        return max(recipes, key=lambda recipe: recipe.views)

    # Analytics

    def analytics(self) -> Analytics:
        total_users = self.storage.count_users()
        total_recipes = self.storage.count_recipes()

        average: Optional[Decimal] = None
        if total_users:
            average = (Decimal(total_recipes) / Decimal(total_users)).quantize(
                TWO_PLACES, rounding=ROUND_HALF_UP
            )

        return Analytics(
            total_users=total_users,
            total_recipes=total_recipes,
            avg_recipes_per_user=average,
            most_viewed=self.storage.top_recipe_by_views(descending=True),
            least_viewed=self.storage.top_recipe_by_views(descending=False),
        )


def _summary(user: Optional[User]) -> Optional[Dict[str, Any]]:
    return user.to_summary() if user else None


__all__ = ["RecipeDirectory"]
