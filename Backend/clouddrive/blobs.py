import logging
import os
import time
from pathlib import Path
from urllib.parse import quote

from .errors import InvalidRequest, NotFound, UpstreamFailure

logger = logging.getLogger(__name__)


def make_locator(owner_id: int, filename: str) -> str:
    safe_name = Path(filename or "file").name or "file"
    return f"{owner_id}/{int(time.time() * 1000)}-{os.urandom(4).hex()}-{safe_name}"


class BlobStore:
    """Blob content kept under a root directory, addressed by locator."""

    def __init__(self, root: str | Path, public_base_url: str = ""):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")

    def _path(self, locator: str) -> Path:
        root = self.root.resolve()
        path = (root / locator).resolve()
        if root not in path.parents:
            raise InvalidRequest(f"Bad storage locator {locator!r}")
        return path

    def upload(self, locator: str, data: bytes) -> None:
        path = self._path(locator)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("wb") as buffer:
                buffer.write(data)
        except OSError as exc:
            logger.exception("blob upload failed for %s", locator)
            raise UpstreamFailure(f"Upload of {locator} failed") from exc

    def download(self, locator: str) -> bytes:
        path = self._path(locator)
        if not path.exists():
            raise NotFound(f"Blob {locator} not found")
        try:
            return path.read_bytes()
        except OSError as exc:
            logger.exception("blob download failed for %s", locator)
            raise UpstreamFailure(f"Download of {locator} failed") from exc

    def delete(self, locator: str) -> None:
        path = self._path(locator)
        try:
            if path.exists():
                path.unlink()
        except OSError as exc:
            logger.exception("blob delete failed for %s", locator)
            raise UpstreamFailure(f"Delete of {locator} failed") from exc

    def exists(self, locator: str) -> bool:
        return self._path(locator).exists()

    def public_url(self, locator: str) -> str:
        return f"{self.public_base_url}/{quote(locator)}"
