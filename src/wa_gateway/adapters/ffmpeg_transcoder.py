"""Audio transcoding through an ffmpeg pipe."""

import asyncio
import base64
import logging
from dataclasses import dataclass

from wa_gateway.domain.errors import ConversionError
from wa_gateway.services.transcoding import AudioTranscoder, decode_audio, format_hint

_logger = logging.getLogger(__name__)


@dataclass
class FfmpegTranscoder(AudioTranscoder):
    """Converts any audio ffmpeg understands to OGG/Opus for voice notes."""

    ffmpeg_path: str = "ffmpeg"

    async def transcode(self, input_mime_type: str, base64_data: str) -> str:
        """Pipe decoded audio through ffmpeg and return base64 OGG/Opus."""
        raw = decode_audio(base64_data)
        command = build_command(self.ffmpeg_path, input_mime_type)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ConversionError(f"Could not start ffmpeg: {exc}") from exc

        stdout, stderr = await process.communicate(raw)
        if process.returncode != 0:
            detail = stderr.decode("utf-8", "ignore").strip()
            _logger.warning("ffmpeg exited with %s: %s", process.returncode, detail)
            raise ConversionError(
                f"FFmpeg conversion failed: {detail or f'exit code {process.returncode}'}"
            )
        if not stdout:
            raise ConversionError("FFmpeg conversion produced no output.")
        return base64.b64encode(stdout).decode("utf-8")


def build_command(ffmpeg_path: str, input_mime_type: str) -> list[str]:
    """Build the ffmpeg argv reading stdin and writing OGG/Opus to stdout."""
    command = [ffmpeg_path, "-hide_banner", "-loglevel", "error"]
    hint = format_hint(input_mime_type)
    if hint:
        command += ["-f", hint]
    command += ["-i", "pipe:0", "-vn", "-c:a", "libopus", "-f", "ogg", "pipe:1"]
    return command
