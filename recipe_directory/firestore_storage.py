from __future__ import annotations

import hashlib
import logging
import os
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from google.api_core import exceptions as gcloud_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from .errors import NotFoundError, StorageError, ValidationError
from .models import ArchivedRecipe, Recipe, User, parse_ingredients
from .storage import DirectoryRepository

logger = logging.getLogger(__name__)

_STORE_ERRORS = (gcloud_exceptions.GoogleAPICallError, gcloud_exceptions.RetryError)


def _email_key(email: str) -> str:
    return hashlib.sha256(email.encode("utf-8")).hexdigest()


def _timestamp(value: Any) -> Optional[datetime]:
    return value if isinstance(value, datetime) else None


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except _STORE_ERRORS as exc:
        logger.warning("Firestore %s failed: %s", action, exc)
        raise StorageError(getattr(exc, "message", None) or str(exc)) from exc


@firestore.transactional
def _delete_existing(transaction: firestore.Transaction, doc_ref: firestore.DocumentReference) -> None:
    snapshot = doc_ref.get(transaction=transaction)
    if not snapshot.exists:
        raise NotFoundError("Recipe not found")
    transaction.delete(doc_ref)


class FirestoreDirectoryStorage(DirectoryRepository):
    """Recipe directory storage backed by Cloud Firestore.

    Users, recipes and archived recipes live in three collections. Email
    uniqueness is kept by a fourth collection whose document ids are email
    digests; it is written in the same batch as the user so a duplicate
    address makes the whole write fail.
    """

    def __init__(
        self,
        *,
        project: Optional[str] = None,
        database: Optional[str] = None,
        users_collection: str = "users",
        recipes_collection: str = "recipes",
        archive_collection: str = "archived_recipes",
        client: Optional[firestore.Client] = None,
    ) -> None:
        if client is None:
            try:
                client = firestore.Client(project=project, database=database)
            except auth_exceptions.GoogleAuthError as exc:
                raise StorageError(f"Could not create Firestore client: {exc}") from exc

        self._client = client
        self._users = client.collection(users_collection)
        self._emails = client.collection(f"{users_collection}_emails")
        self._recipes = client.collection(recipes_collection)
        self._archive = client.collection(archive_collection)

    @classmethod
    def from_env(cls) -> "FirestoreDirectoryStorage":
        """Build a storage instance from environment variables."""

        return cls(
            project=os.environ.get("FIRESTORE_PROJECT") or os.environ.get("GCP_PROJECT"),
            database=os.environ.get("FIRESTORE_DATABASE") or None,
            users_collection=os.environ.get("USERS_COLLECTION", "users"),
            recipes_collection=os.environ.get("RECIPES_COLLECTION", "recipes"),
            archive_collection=os.environ.get("ARCHIVE_COLLECTION", "archived_recipes"),
        )

    def ping(self) -> None:
        try:
            with _store_errors("connection check"):
                list(self._users.limit(1).stream())
        except auth_exceptions.GoogleAuthError as exc:
            raise StorageError(f"Firestore credentials rejected: {exc}") from exc

    # Users

    def add_user(self, *, name: str, email: str) -> User:
        user_ref = self._users.document()
        email_ref = self._emails.document(_email_key(email))

        batch = self._client.batch()
        batch.create(email_ref, {"user_id": user_ref.id})
        batch.set(
            user_ref,
            {"name": name, "email": email, "created_at": firestore.SERVER_TIMESTAMP},
        )

        with _store_errors("user insert"):
            try:
                batch.commit()
            except gcloud_exceptions.Conflict as exc:
                raise ValidationError.from_violations(
                    "User", {"email": "is already registered"}
                ) from exc
            snapshot = user_ref.get()

        return self._doc_to_user(snapshot.id, snapshot.to_dict() or {})

    def get_users(self, user_ids: Iterable[str]) -> Dict[str, User]:
        refs = []
        for user_id in set(user_ids):
            if not user_id:
                continue
            try:
                refs.append(self._users.document(user_id))
            except ValueError:
                logger.warning("Skipping unusable author id %r", user_id)
        if not refs:
            return {}

        users: Dict[str, User] = {}
        with _store_errors("user lookup"):
            for snapshot in self._client.get_all(refs):
                if snapshot.exists:
                    users[snapshot.id] = self._doc_to_user(snapshot.id, snapshot.to_dict() or {})
        return users

    def count_users(self) -> int:
        return self._count(self._users)

    # Recipes

    def add_recipe(self, fields: Mapping[str, Any]) -> Recipe:
        doc = dict(fields)
        doc.setdefault("description", None)
        doc.setdefault("views", 0)
        doc["created_at"] = firestore.SERVER_TIMESTAMP

        doc_ref = self._recipes.document()
        with _store_errors("recipe insert"):
            doc_ref.set(doc)
            snapshot = doc_ref.get()

        return self._doc_to_recipe(snapshot.id, snapshot.to_dict() or {})

    def get_recipe(self, recipe_id: str) -> Recipe:
        with _store_errors("recipe lookup"):
            snapshot = self._recipes.document(recipe_id).get()

        if not snapshot.exists:
            raise NotFoundError("Recipe not found")

        return self._doc_to_recipe(snapshot.id, snapshot.to_dict() or {})

    def update_recipe(self, recipe_id: str, fields: Mapping[str, Any]) -> Recipe:
        doc_ref = self._recipes.document(recipe_id)
        with _store_errors("recipe update"):
            try:
                doc_ref.update(dict(fields))
            except gcloud_exceptions.NotFound as exc:
                raise NotFoundError("Recipe not found") from exc
            snapshot = doc_ref.get()

        return self._doc_to_recipe(snapshot.id, snapshot.to_dict() or {})

    def increment_views(self, recipe_id: str) -> Recipe:
        doc_ref = self._recipes.document(recipe_id)
        with _store_errors("view increment"):
            try:
                doc_ref.update({"views": firestore.Increment(1)})
            except gcloud_exceptions.NotFound as exc:
                raise NotFoundError("Recipe not found") from exc
            snapshot = doc_ref.get()

        # Deleted between the increment and the read.
        if not snapshot.exists:
            raise NotFoundError("Recipe not found")

        return self._doc_to_recipe(snapshot.id, snapshot.to_dict() or {})

    def archive_recipe(self, recipe: Recipe) -> None:
        archived = ArchivedRecipe.from_recipe(recipe)
        doc = archived.fields()
        doc["created_at"] = archived.created_at
        doc["archived_at"] = archived.archived_at or firestore.SERVER_TIMESTAMP

        with _store_errors("recipe archive"):
            self._archive.document(archived.id).set(doc)

    def delete_recipe(self, recipe_id: str) -> None:
        doc_ref = self._recipes.document(recipe_id)
        with _store_errors("recipe delete"):
            _delete_existing(self._client.transaction(), doc_ref)

    def list_recipes(self, *, author: Optional[str] = None) -> List[Recipe]:
        query = self._recipes
        if author is not None:
            query = query.where(filter=FieldFilter("author", "==", author))

        with _store_errors("recipe listing"):
            return [
                self._doc_to_recipe(doc.id, doc.to_dict() or {}) for doc in query.stream()
            ]

    def count_recipes(self) -> int:
        return self._count(self._recipes)

    def top_recipe_by_views(self, *, descending: bool = True) -> Optional[Recipe]:
        direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
        query = self._recipes.order_by("views", direction=direction).limit(1)

        with _store_errors("recipe ranking"):
            docs = list(query.stream())

        if not docs:
            return None
        return self._doc_to_recipe(docs[0].id, docs[0].to_dict() or {})

    # Helpers

    def _count(self, collection: firestore.CollectionReference) -> int:
        with _store_errors("count"):
            results = collection.count().get()
        return int(results[0][0].value)

    def _doc_to_user(self, doc_id: str, data: dict) -> User:
        return User(
            id=doc_id,
            name=data.get("name", ""),
            email=data.get("email", ""),
            created_at=_timestamp(data.get("created_at")),
        )

    def _doc_to_recipe(self, doc_id: str, data: dict) -> Recipe:
        ingredients = data.get("ingredients")
        if isinstance(ingredients, str):
            parsed_ingredients = parse_ingredients(ingredients)
        elif isinstance(ingredients, list):
            parsed_ingredients = ingredients
        else:
            parsed_ingredients = []

        return Recipe(
            id=doc_id,
            title=data.get("title", ""),
            description=data.get("description"),
            ingredients=parsed_ingredients,
            instructions=data.get("instructions", ""),
            author=data.get("author", ""),
            views=int(data.get("views") or 0),
            created_at=_timestamp(data.get("created_at")),
        )


__all__ = ["FirestoreDirectoryStorage"]
