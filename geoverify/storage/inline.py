import base64
import binascii
import logging

from geoverify.storage.base import PhotoArtifact, PhotoUpload

logger = logging.getLogger(__name__)


class InlinePhotoBackend:
    """Keeps the photo inside the verification row as base64 text."""

    name = "inline"

    async def persist(self, photo: PhotoUpload) -> PhotoArtifact:
        return PhotoArtifact(
            size=photo.size,
            content_type=photo.content_type,
            photo_data=base64.b64encode(photo.content).decode("ascii"),
        )

    async def discard(self, artifact: PhotoArtifact) -> bool:
        # Nothing exists outside the row, so a failed insert leaves no orphan
        return False

    async def load(self, artifact: PhotoArtifact) -> bytes | None:
        return self.decode(artifact.photo_data)

    @staticmethod
    def decode(photo_data: str | None) -> bytes | None:
        if photo_data is None:
            return None
        try:
            return base64.b64decode(photo_data, validate=True)
        except (binascii.Error, ValueError):
            logger.warning("Stored inline photo is not valid base64")
            return None
