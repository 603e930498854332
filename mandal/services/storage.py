"""Payment-slip image storage.

The ledger only needs ``store`` to hand back a stable reference; the default
implementation writes under ``UPLOADS_DIR/proofs`` and serves files back
through ``/api/proofs/{path}``.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol

from mandal.core.config import PROOFS_DIR
from mandal.core.errors import ExternalDependencyFailure

logger = logging.getLogger(__name__)

PROOF_URL_PREFIX = "/api/proofs/"
ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif"}


@dataclass(frozen=True)
class StoredImage:
    url: str
    path: Optional[Path] = None


class ImageStorage(Protocol):
    def store(self, content: bytes, folder_hint: str, name_hint: str, extension: str = ".jpg") -> StoredImage: ...

    def discard(self, url: str) -> None: ...


def _safe_part(value: str) -> str:
    cleaned = "".join(c if c.isalnum() or c in "-_" else "-" for c in (value or "").strip().lower())
    return cleaned.strip("-") or "slip"


class LocalImageStorage:
    """Stores slips on local disk."""

    def __init__(self, root: Path = PROOFS_DIR):
        self.root = Path(root)

    def store(self, content: bytes, folder_hint: str, name_hint: str, extension: str = ".jpg") -> StoredImage:
        if not content:
            raise ExternalDependencyFailure("UPLOAD_FAILED", "Payment slip image is empty")
        ext = extension.lower() if extension else ".jpg"
        if ext not in ALLOWED_EXTENSIONS:
            ext = ".jpg"

        folder = self.root / _safe_part(folder_hint)
        timestamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S_%f")
        file_path = folder / f"{_safe_part(name_hint)}_{timestamp}{ext}"
        try:
            folder.mkdir(parents=True, exist_ok=True)
            with open(file_path, "wb") as f:
                f.write(content)
        except OSError as exc:
            logger.error(f"Failed to store slip {file_path}: {exc}")
            raise ExternalDependencyFailure("UPLOAD_FAILED", "Failed to store payment slip image")

        relative = file_path.relative_to(self.root).as_posix()
        return StoredImage(url=f"{PROOF_URL_PREFIX}{relative}", path=file_path)

    def resolve(self, url_or_relative: str) -> Optional[Path]:
        """Map a proof URL back to a file inside the storage root, or None."""
        relative = url_or_relative
        if relative.startswith(PROOF_URL_PREFIX):
            relative = relative[len(PROOF_URL_PREFIX):]
        candidate = (self.root / relative).resolve()
        if not candidate.is_relative_to(self.root.resolve()):
            return None
        return candidate if candidate.is_file() else None

    def discard(self, url: str) -> None:
        path = self.resolve(url)
        if path is None:
            return
        try:
            path.unlink()
        except OSError as exc:
            logger.warning(f"Could not remove discarded slip {path}: {exc}")
