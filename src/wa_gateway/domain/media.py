"""Media payload model shared by inbound and outbound messages."""

import base64
import mimetypes
from pathlib import Path

from pydantic import BaseModel

from wa_gateway.domain.errors import InvalidInputError


class MediaPayload(BaseModel):
    """Base64-encoded media with its mimetype."""

    mimetype: str
    data: str
    filename: str | None = None

    @classmethod
    def from_media_root(cls, media_root: Path, file_path: str) -> "MediaPayload":
        """Load a file that lives under ``media_root`` into a media payload.

        Paths are resolved before the check, so ``..`` segments and symlinks
        cannot escape the root.
        """
        root = media_root.resolve()
        path = (root / file_path).resolve()
        if not path.is_relative_to(root):
            raise InvalidInputError(f"Media file {file_path} is outside the media root.")
        try:
            raw = path.read_bytes()
        except OSError as exc:
            raise InvalidInputError(f"Cannot read media file {file_path}: {exc}") from exc
        mimetype, _ = mimetypes.guess_type(path.name)
        return cls(
            mimetype=mimetype or "application/octet-stream",
            data=base64.b64encode(raw).decode("utf-8"),
            filename=path.name,
        )
