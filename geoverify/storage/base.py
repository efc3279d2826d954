"""Shared types for the photo storage backends."""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class PhotoUpload:
    """An uploaded photo as received from the client."""

    content: bytes
    filename: str = ""
    content_type: str = ""

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class PhotoArtifact:
    """Where a persisted photo lives. Exactly one of path/data is set."""

    size: int
    content_type: str = ""
    photo_path: str | None = None
    photo_data: str | None = None


class PhotoBackend(Protocol):
    name: str

    async def persist(self, photo: PhotoUpload) -> PhotoArtifact: ...

    async def discard(self, artifact: PhotoArtifact) -> bool: ...

    async def load(self, artifact: PhotoArtifact) -> bytes | None: ...
