"""WSGI entrypoint for the Recipe Directory API.

Containerized deployments serve the ``app`` object below with Gunicorn.
Local development can use ``flask --app main run`` or ``python main.py``,
which starts the development server on ``PORT`` (default 5004).

The Firestore connection is checked while the module is imported; when it
fails the process exits with status 1 instead of serving requests.
"""

import logging
import os
import sys

from recipe_directory import StorageError, create_app
from recipe_directory.logging_config import setup_logging

DEFAULT_PORT = 5004

setup_logging(os.environ.get("LOG_LEVEL", "INFO"))
logger = logging.getLogger("recipe_directory.main")

try:
    app = create_app()
except StorageError as exc:
    logger.critical("Document store connection failed: %s", exc.message)
    sys.exit(1)


if __name__ == "__main__":
    port = int(os.environ.get("PORT", DEFAULT_PORT))
    logger.info("Server running on port %d", port)
    app.run(host="0.0.0.0", port=port)


__all__ = ["app"]
