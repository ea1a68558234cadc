import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

EMAIL_PATTERN = re.compile(r".+@.+\..+")
MIN_NAME_LENGTH = 3
MIN_TITLE_LENGTH = 3

# Firestore reserves ids of the form __name__.
DUNDER_ID = re.compile(r"__.*__", re.DOTALL)
MAX_DOCUMENT_ID_BYTES = 1500

RECIPE_FIELDS = ("title", "description", "ingredients", "instructions", "author", "views")
NO_RECIPES_YET = "No recipes yet"

_UNSET = object()


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class User:
    """Domain object representing a registered user."""

    id: str
    name: str
    email: str
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "createdAt": _isoformat(self.created_at),
        }

    def to_summary(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "email": self.email}


@dataclass
class Recipe:
    """Domain object representing a stored recipe.

    ``author`` is the id of the owning user. It is not checked against the
    users collection when the recipe is written.
    """

    id: str
    title: str
    description: Optional[str]
    ingredients: List[str]
    instructions: str
    author: str
    views: int = 0
    created_at: Optional[datetime] = None

    def fields(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in RECIPE_FIELDS}

    def to_dict(self, author: Any = _UNSET) -> Dict[str, Any]:
        """Project the recipe to JSON.

        Passing ``author`` replaces the stored author id, which is how
        populated responses are built. ``None`` renders an author that did
        not resolve.
        """
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "ingredients": list(self.ingredients),
            "instructions": self.instructions,
            "author": self.author if author is _UNSET else author,
            "views": self.views,
            "createdAt": _isoformat(self.created_at),
        }


@dataclass
class ArchivedRecipe(Recipe):
    """Copy of a deleted recipe kept in the archive collection."""

    archived_at: Optional[datetime] = None

    @classmethod
    def from_recipe(cls, recipe: Recipe, archived_at: Optional[datetime] = None) -> "ArchivedRecipe":
        return cls(
            id=recipe.id,
            title=recipe.title,
            description=recipe.description,
            ingredients=list(recipe.ingredients),
            instructions=recipe.instructions,
            author=recipe.author,
            views=recipe.views,
            created_at=recipe.created_at,
            archived_at=archived_at,
        )

    def to_dict(self, author: Any = _UNSET) -> Dict[str, Any]:
        data = super().to_dict(author)
        data["archivedAt"] = _isoformat(self.archived_at)
        return data


@dataclass
class Analytics:
    """Directory-wide counters.

    Counts are integers while the average is a two-place ``Decimal``; the
    JSON projection keeps that distinction instead of folding both into one
    numeric type.
    """

    total_users: int
    total_recipes: int
    avg_recipes_per_user: Optional[Decimal]
    most_viewed: Optional[Recipe] = None
    least_viewed: Optional[Recipe] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.avg_recipes_per_user is None:
            average: Union[int, str] = 0
        else:
            average = f"{self.avg_recipes_per_user:.2f}"
        return {
            "totalUsers": self.total_users,
            "totalRecipes": self.total_recipes,
            "avgRecipesPerUser": average,
            "mostViewedRecipe": self.most_viewed.to_dict() if self.most_viewed else NO_RECIPES_YET,
            "leastViewedRecipe": (
                self.least_viewed.to_dict() if self.least_viewed else NO_RECIPES_YET
            ),
        }


def parse_ingredients(ingredients_text: str) -> List[str]:
    return [line.strip() for line in ingredients_text.splitlines() if line.strip()]


def is_document_id(value: str) -> bool:
    """Return whether ``value`` can name a single document in a collection."""

    if "/" in value or value in (".", ".."):
        return False
    if DUNDER_ID.fullmatch(value):
        return False
    return len(value.encode("utf-8")) <= MAX_DOCUMENT_ID_BYTES


def _check_text(
    violations: Dict[str, str],
    data: Dict[str, Any],
    name: str,
    *,
    min_length: int = 0,
) -> None:
    value = data.get(name)
    if value is None or value == "":
        violations[name] = "is required"
    elif not isinstance(value, str):
        violations[name] = "must be a string"
    elif len(value) < min_length:
        violations[name] = f"must be at least {min_length} characters long"


def validate_user(data: Dict[str, Any]) -> Dict[str, str]:
    """Return the violations found in a user document, keyed by field."""

    violations: Dict[str, str] = {}
    _check_text(violations, data, "name", min_length=MIN_NAME_LENGTH)
    _check_text(violations, data, "email")
    if "email" not in violations and not EMAIL_PATTERN.search(data["email"]):
        violations["email"] = "is not a valid email address"
    return violations


def validate_recipe(data: Dict[str, Any]) -> Dict[str, str]:
    """Return the violations found in a recipe document, keyed by field."""

    violations: Dict[str, str] = {}
    _check_text(violations, data, "title", min_length=MIN_TITLE_LENGTH)
    _check_text(violations, data, "instructions")
    _check_text(violations, data, "author")
    if "author" not in violations and not is_document_id(data["author"]):
        violations["author"] = "is not a valid user id"

    description = data.get("description")
    if description is not None and not isinstance(description, str):
        violations["description"] = "must be a string"

    ingredients = data.get("ingredients")
    if ingredients is None:
        violations["ingredients"] = "is required"
    elif not isinstance(ingredients, list) or not all(
        isinstance(item, str) for item in ingredients
    ):
        violations["ingredients"] = "must be a list of strings"

    views = data.get("views", 0)
    if isinstance(views, bool) or not isinstance(views, int):
        violations["views"] = "must be an integer"
    elif views < 0:
        violations["views"] = "must not be negative"

    return violations


def normalize_recipe_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only recipe fields and split newline separated ingredient text."""

    fields = {name: data[name] for name in RECIPE_FIELDS if name in data}
    if isinstance(fields.get("ingredients"), str):
        fields["ingredients"] = parse_ingredients(fields["ingredients"])
    return fields


__all__ = [
    "Analytics",
    "ArchivedRecipe",
    "NO_RECIPES_YET",
    "RECIPE_FIELDS",
    "Recipe",
    "User",
    "normalize_recipe_fields",
    "is_document_id",
    "parse_ingredients",
    "validate_recipe",
    "validate_user",
]
