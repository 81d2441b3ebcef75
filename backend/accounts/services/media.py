"""Upload of avatar and cover images."""
from dataclasses import dataclass
import logging
from pathlib import Path
import shutil
from typing import Protocol
import uuid

from fastapi import UploadFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedMedia:
    url: str


class MediaUploader(Protocol):
    def upload(self, file: UploadFile | None) -> UploadedMedia | None:
        """Store a file and return where it is hosted, or None if nothing was stored."""
        ...

    def discard(self, media: UploadedMedia) -> None:
        """Remove previously uploaded media."""
        ...


def _safe_suffix(filename: str) -> str:
    # Only the extension of the client-supplied name is kept.
    suffix = Path(filename).suffix.lower()
    if not suffix[1:].isalnum():
        return ""
    return suffix[:10]


class LocalMediaUploader:
    """Stores uploads on local disk under ``media_dir`` and serves them from ``base_url``."""

    def __init__(self, media_dir: Path, base_url: str):
        self.media_dir = Path(media_dir)
        self.base_url = base_url.rstrip("/")

    def upload(self, file: UploadFile | None) -> UploadedMedia | None:
        if file is None or not file.filename:
            return None

        name = f"{uuid.uuid4().hex}{_safe_suffix(file.filename)}"
        dest_path = self.media_dir / name
        try:
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            with dest_path.open("wb") as f:
                shutil.copyfileobj(file.file, f)
        except OSError as exc:
            logger.error(f"Failed to store upload {file.filename!r}: {exc}")
            dest_path.unlink(missing_ok=True)
            return None

        if dest_path.stat().st_size == 0:
            dest_path.unlink()
            return None

        return UploadedMedia(url=f"{self.base_url}/{name}")

    def discard(self, media: UploadedMedia) -> None:
        name = media.url.rsplit("/", 1)[-1]
        path = self.media_dir / name
        if name in ("", "..") or path.parent != self.media_dir:
            return
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.error(f"Failed to remove media {name!r}: {exc}")
