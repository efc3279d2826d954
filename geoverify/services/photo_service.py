from starlette.requests import Request

from geoverify.config import Settings
from geoverify.storage.base import PhotoBackend
from geoverify.storage.disk import DiskPhotoBackend
from geoverify.storage.inline import InlinePhotoBackend


class PhotoBackends:
    """The photo backends available to one application instance.

    ``default`` is the backend the full verification path writes with;
    ``disk`` and ``inline`` are always available for reads and for the
    inline entry path.
    """

    def __init__(self, disk: DiskPhotoBackend, inline: InlinePhotoBackend, default: str = "disk"):
        self.disk = disk
        self.inline = inline
        self.default: PhotoBackend = inline if default == "inline" else disk

    @classmethod
    def from_settings(cls, cfg: Settings) -> "PhotoBackends":
        return cls(
            disk=DiskPhotoBackend(root_dir=cfg.photo_store_path),
            inline=InlinePhotoBackend(),
            default=cfg.photo_backend,
        )


def get_photo_backends(request: Request) -> PhotoBackends:
    """FastAPI dependency returning the app's photo backends."""
    return request.app.state.photo_backends
