"""Audio transcoding interface and input normalization."""

import base64
import binascii
import re
from typing import Protocol

from wa_gateway.domain.errors import InvalidInputError

_DATA_URL_PREFIX = re.compile(r"^data:.*;base64,")

# Container hints for inputs ffmpeg cannot always sniff from a pipe.
FORMAT_HINTS: dict[str, str] = {
    "audio/mp3": "mp3",
    "audio/mpeg": "mp3",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
}

VOICE_NOTE_MIME_TYPE = "audio/ogg"


class AudioTranscoder(Protocol):
    """Converts audio to the voice-note encoding (OGG container, Opus codec)."""

    async def transcode(self, input_mime_type: str, base64_data: str) -> str:
        """Return the converted audio as base64."""


def strip_data_url(base64_data: str) -> str:
    """Remove a ``data:<mime>;base64,`` prefix if present."""
    return _DATA_URL_PREFIX.sub("", base64_data, count=1)


def decode_audio(base64_data: str) -> bytes:
    """Decode base64 audio, rejecting undecodable or empty payloads."""
    cleaned = strip_data_url(base64_data).strip()
    try:
        raw = base64.b64decode(cleaned, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise InvalidInputError("Audio payload is not valid base64.") from exc
    if not raw:
        raise InvalidInputError("Audio payload is empty. Check the base64 string.")
    return raw


def format_hint(input_mime_type: str) -> str | None:
    """Return the ffmpeg input format for a known mime type."""
    return FORMAT_HINTS.get(input_mime_type.strip().lower())
