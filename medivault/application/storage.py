import os

import structlog
from werkzeug.security import safe_join

from .errors import StoreError, ValidationError

logger = structlog.get_logger(__name__)


class LocalObjectStore:
    def __init__(self, root, base_url='/files/test-reports'):
        self.root = root
        self.base_url = base_url.rstrip('/')

    def _path(self, path):
        full = safe_join(self.root, path)
        if full is None:
            raise ValidationError(message="Invalid file path", detail=path)
        return full

    def url_for(self, path):
        return f"{self.base_url}/{path}"

    def put(self, path, data):
        full = self._path(path)
        try:
            os.makedirs(os.path.dirname(full), exist_ok=True)
            with open(full, 'wb') as fh:
                fh.write(data)
        except OSError as exc:
            logger.error("object_put_failed", path=path, error=str(exc))
            raise StoreError(detail=f"could not write {path}: {exc}") from exc
        logger.info("object_stored", path=path, size=len(data))
        return self.url_for(path)

    def remove(self, path):
        full = self._path(path)
        try:
            os.remove(full)
        except FileNotFoundError:
            logger.warning("object_already_missing", path=path)
        except OSError as exc:
            logger.error("object_remove_failed", path=path, error=str(exc))
            raise StoreError(detail=f"could not remove {path}: {exc}") from exc

    def exists(self, path):
        return os.path.exists(self._path(path))
