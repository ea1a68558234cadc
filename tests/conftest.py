from __future__ import annotations

import copy
import uuid
from datetime import datetime, timezone

import pytest

from recipe_directory import create_app
from recipe_directory.errors import NotFoundError, ValidationError
from recipe_directory.models import ArchivedRecipe, Recipe, User


class InMemoryDirectoryStorage:
    """Simple storage backend used for tests."""

    def __init__(self) -> None:
        self.users: dict[str, User] = {}
        self.recipes: dict[str, Recipe] = {}
        self.archive: list[ArchivedRecipe] = []

    def ping(self) -> None:
        return None

    def add_user(self, *, name, email) -> User:
        if any(user.email == email for user in self.users.values()):
            raise ValidationError.from_violations("User", {"email": "is already registered"})
        user = User(
            id=uuid.uuid4().hex,
            name=name,
            email=email,
            created_at=datetime.now(timezone.utc),
        )
        self.users[user.id] = user
        return copy.deepcopy(user)

    def get_users(self, user_ids):
        return {
            user_id: copy.deepcopy(self.users[user_id])
            for user_id in set(user_ids)
            if user_id in self.users
        }

    def count_users(self) -> int:
        return len(self.users)

    def add_recipe(self, fields) -> Recipe:
        recipe = Recipe(
            id=uuid.uuid4().hex,
            title=fields["title"],
            description=fields.get("description"),
            ingredients=list(fields["ingredients"]),
            instructions=fields["instructions"],
            author=fields["author"],
            views=fields.get("views", 0),
            created_at=datetime.now(timezone.utc),
        )
        self.recipes[recipe.id] = recipe
        return copy.deepcopy(recipe)

    def get_recipe(self, recipe_id) -> Recipe:
        try:
            return copy.deepcopy(self.recipes[recipe_id])
        except KeyError:
            raise NotFoundError("Recipe not found") from None

    def update_recipe(self, recipe_id, fields) -> Recipe:
        if recipe_id not in self.recipes:
            raise NotFoundError("Recipe not found")
        recipe = self.recipes[recipe_id]
        for name, value in fields.items():
            setattr(recipe, name, value)
        return copy.deepcopy(recipe)

    def increment_views(self, recipe_id) -> Recipe:
        if recipe_id not in self.recipes:
            raise NotFoundError("Recipe not found")
        self.recipes[recipe_id].views += 1
        return copy.deepcopy(self.recipes[recipe_id])

    def archive_recipe(self, recipe) -> None:
        self.archive.append(
            ArchivedRecipe.from_recipe(recipe, archived_at=datetime.now(timezone.utc))
        )

    def delete_recipe(self, recipe_id) -> None:
        if self.recipes.pop(recipe_id, None) is None:
            raise NotFoundError("Recipe not found")

    def list_recipes(self, *, author=None):
        return [
            copy.deepcopy(recipe)
            for recipe in self.recipes.values()
            if author is None or recipe.author == author
        ]

    def count_recipes(self) -> int:
        return len(self.recipes)

    def top_recipe_by_views(self, *, descending=True):
        if not self.recipes:
            return None
        ranked = sorted(self.recipes.values(), key=lambda recipe: recipe.views, reverse=descending)
        return copy.deepcopy(ranked[0])


@pytest.fixture
def storage():
    return InMemoryDirectoryStorage()


@pytest.fixture
def app(storage):
    app = create_app(storage=storage)
    app.config.update(TESTING=True)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(storage):
    def _make_user(name="Julia Child", email=None):
        return storage.add_user(name=name, email=email or f"{uuid.uuid4().hex[:8]}@example.com")

    return _make_user


@pytest.fixture
def make_recipe(storage, make_user):
    def _make_recipe(title="Chocolate Cake", author=None, views=0, **overrides):
        fields = {
            "title": title,
            "description": "Rich and moist.",
            "ingredients": ["flour", "sugar"],
            "instructions": "Bake it.",
            "author": author or make_user().id,
            "views": views,
        }
        fields.update(overrides)
        return storage.add_recipe(fields)

    return _make_recipe
