import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import HTTPException

from .directory import RecipeDirectory
from .errors import NotFoundError, RecipeDirectoryError, StorageError, ValidationError
from .models import Recipe, User
from .storage import DirectoryRepository

logger = logging.getLogger(__name__)

ROUTE_NOT_FOUND = "Route not found. Please check the URL."
INTERNAL_ERROR = "Internal Server Error. Please try again later."

SECURITY_HEADERS = {
    "Content-Security-Policy": "default-src 'self'",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}


def create_app(storage: Optional[DirectoryRepository] = None) -> Flask:
    """Create and configure the Flask application.

    Parameters
    ----------
    storage:
        Optional directory repository. When ``None`` the application connects
        to Firestore using environment variables and checks the connection
        before returning; a failure raises :class:`StorageError`.
    """

    app = Flask(__name__)

    if storage is None:
        from .firestore_storage import FirestoreDirectoryStorage

        storage = FirestoreDirectoryStorage.from_env()
        storage.ping()
        logger.info("Connected to Firestore")
    app.config["RECIPE_DIRECTORY"] = RecipeDirectory(storage)

    def directory() -> RecipeDirectory:
        return app.config["RECIPE_DIRECTORY"]

    @app.before_request
    def log_request() -> None:
        timestamp = datetime.now(timezone.utc).isoformat()
        logger.info("[%s] %s %s", timestamp, request.method, request.full_path.rstrip("?"))

    @app.after_request
    def add_security_headers(response: Response) -> Response:
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    @app.post("/add-user")
    def add_user() -> Tuple[Response, int]:
        body = _json_body()
        user = directory().create_user(body.get("name"), body.get("email"))
        return jsonify({"message": "User successfully created!", "user": user.to_dict()}), 201

    @app.post("/add-recipe")
    def add_recipe() -> Tuple[Response, int]:
        recipe = directory().create_recipe(_json_body())
        return jsonify({"message": "Recipe added successfully!", "recipe": recipe.to_dict()}), 201

    @app.put("/update-recipe/<recipe_id>")
    def update_recipe(recipe_id: str) -> Response:
        recipe = directory().update_recipe(recipe_id, _json_body())
        return jsonify(
            {"message": "Recipe updated successfully!", "updatedRecipe": recipe.to_dict()}
        )

    @app.delete("/delete-recipe/<recipe_id>")
    def delete_recipe(recipe_id: str) -> Response:
        directory().delete_recipe(recipe_id)
        return jsonify({"message": "Recipe archived and deleted successfully."})

    @app.get("/recipes")
    def list_recipes() -> Response:
        return jsonify(directory().list_recipes(request.args.get("title")))

    @app.get("/recipe/<recipe_id>")
    def get_recipe(recipe_id: str) -> Response:
        return jsonify(directory().get_recipe(recipe_id))

    @app.get("/user-recipes/<user_id>")
    def user_recipes(user_id: str) -> Response:
        return jsonify([recipe.to_dict() for recipe in directory().recipes_by_user(user_id)])

    @app.get("/user/<user_id>/views")
    def user_total_views(user_id: str) -> Response:
        return jsonify({"totalViews": directory().total_views_by_user(user_id)})

    @app.get("/user/<user_id>/highestviews")
    def user_most_viewed(user_id: str) -> Response:
        return jsonify(directory().most_viewed_by_user(user_id).to_dict())

    @app.get("/recipes/view/<recipe_id>")
    def increment_view(recipe_id: str) -> Response:
        views = directory().increment_view(recipe_id)
        return jsonify({"message": "View incremented", "views": views})

    @app.get("/analytics")
    def analytics() -> Response:
        return jsonify(directory().analytics().to_dict())

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError) -> Tuple[Response, int]:
        payload: Dict[str, Any] = {"error": exc.message}
        if exc.violations:
            payload["violations"] = exc.violations
        return jsonify(payload), 400

    @app.errorhandler(NotFoundError)
    def handle_not_found(exc: NotFoundError) -> Tuple[Response, int]:
        return jsonify({"message": exc.message}), 404

    @app.errorhandler(StorageError)
    def handle_storage_error(exc: StorageError) -> Tuple[Response, int]:
        return jsonify({"error": exc.message}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException) -> Tuple[Response, int]:
        if exc.code in (404, 405):
            return jsonify({"success": False, "message": ROUTE_NOT_FOUND}), 404
        return jsonify({"success": False, "message": exc.description}), exc.code or 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception) -> Tuple[Response, int]:
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"success": False, "message": INTERNAL_ERROR}), 500

    return app


def _json_body() -> Dict[str, Any]:
    body = request.get_json(silent=True)
    if body is None:
        if request.get_data():
            raise ValidationError("Request body must be valid JSON.")
        return {}
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object.")
    return body


__all__ = [
    "DirectoryRepository",
    "NotFoundError",
    "Recipe",
    "RecipeDirectoryError",
    "StorageError",
    "User",
    "ValidationError",
    "create_app",
]
