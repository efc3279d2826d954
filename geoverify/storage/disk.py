import asyncio
import logging
import re
import secrets
import time
from pathlib import Path

from geoverify.storage.base import PhotoArtifact, PhotoUpload

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png"}
PHOTO_FILENAME_RE = re.compile(r"^photo-\d{13,}-\d{1,9}\.(?:jpe?g|png|bin)$")


def safe_extension(filename: str) -> str:
    """Return the lowercased extension of ``filename`` if it is an allowed image type.

    Only the final suffix of the basename is considered, so names such as
    ``../../etc/passwd`` or ``evil.png/..`` never contribute a path component.
    """
    basename = re.split(r"[\\/]", filename or "")[-1]
    suffix = Path(basename).suffix.lower()
    return suffix if suffix in ALLOWED_EXTENSIONS else ".bin"


class DiskPhotoBackend:
    """Stores photos as individual files under a managed directory.

    Files are named ``photo-<epoch_ms>-<random>.<ext>``; the caller-supplied
    filename only contributes a sanitized extension.
    """

    name = "disk"

    def __init__(self, root_dir: str):
        self.root = Path(root_dir)

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def new_filename(original_name: str) -> str:
        unique_suffix = f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}"
        return f"photo-{unique_suffix}{safe_extension(original_name)}"

    async def persist(self, photo: PhotoUpload) -> PhotoArtifact:
        filename = self.new_filename(photo.filename)
        await asyncio.to_thread(self._write_new, filename, photo.content)
        logger.debug("Stored photo %s (%d bytes)", filename, photo.size)
        return PhotoArtifact(
            size=photo.size,
            content_type=photo.content_type,
            photo_path=filename,
        )

    async def discard(self, artifact: PhotoArtifact) -> bool:
        if not artifact.photo_path:
            return False
        return await asyncio.to_thread(self.delete, artifact.photo_path)

    async def load(self, artifact: PhotoArtifact) -> bytes | None:
        if not artifact.photo_path:
            return None
        return await asyncio.to_thread(self.get, artifact.photo_path)

    def get(self, filename: str) -> bytes | None:
        """Read a stored photo. Returns None if missing or outside the store."""
        path = self.resolve(filename)
        if path is not None and path.is_file():
            return path.read_bytes()
        return None

    def exists(self, filename: str) -> bool:
        path = self.resolve(filename)
        return bool(path is not None and path.is_file())

    def delete(self, filename: str) -> bool:
        path = self.resolve(filename)
        if path is not None and path.is_file():
            path.unlink()
            return True
        return False

    def resolve(self, filename: str) -> Path | None:
        """Resolve ``filename`` and ensure it stays directly under the store root."""
        if not filename or filename in {".", ".."}:
            return None
        try:
            root_resolved = self.root.resolve()
            resolved = (self.root / filename).resolve()
        except (OSError, ValueError):
            return None
        if resolved.parent != root_resolved:
            return None
        return resolved

    def photo_files(self) -> list[Path]:
        """Files in the store that match the generated photo name pattern."""
        if not self.root.is_dir():
            return []
        return [
            p for p in self.root.iterdir()
            if p.is_file() and PHOTO_FILENAME_RE.match(p.name)
        ]

    def _write_new(self, filename: str, content: bytes) -> None:
        self.ensure_root()
        # "xb" refuses to overwrite, so a name collision surfaces as an error
        with open(self.root / filename, "xb") as fh:
            fh.write(content)
