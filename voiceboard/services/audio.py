"""Audio clip boundary: recorder protocol and transport encoding."""

import base64
import binascii
from typing import Callable, Protocol
from pydantic import BaseModel, Field
from voiceboard.utils.errors import AudioEncodingError

DEFAULT_MIME_TYPE = "audio/webm;codecs=opus"
FALLBACK_MIME_TYPE = "audio/webm"


class AudioClip(BaseModel):
    """A finished recording."""
    data: bytes = Field(..., description="Raw audio bytes")
    mime_type: str = Field(default=DEFAULT_MIME_TYPE)
    duration_seconds: int = Field(default=0, ge=0)

    @classmethod
    def from_base64(cls, encoded: str, mime_type: str, duration_seconds: int = 0) -> "AudioClip":
        """Rebuild a clip from its transport form (data URL prefix allowed)."""
        if not encoded:
            raise AudioEncodingError("Audio payload is empty")
        if encoded.startswith("data:"):
            encoded = encoded.split(",", 1)[-1]
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise AudioEncodingError(f"Audio payload is not valid base64: {e}")
        return cls(data=data, mime_type=mime_type or DEFAULT_MIME_TYPE, duration_seconds=duration_seconds)


class AudioRecorder(Protocol):
    """Device recorder; capture itself lives outside this backend."""

    def start_recording(self) -> None:
        """Raises AudioCaptureError if the microphone is unavailable or denied."""
        ...

    def stop_recording(self) -> AudioClip:
        ...


def choose_mime_type(is_supported: Callable[[str], bool]) -> str:
    """Recorder MIME type: Opus in WebM where the device supports it."""
    return DEFAULT_MIME_TYPE if is_supported(DEFAULT_MIME_TYPE) else FALLBACK_MIME_TYPE


def encode_audio_clip(clip: AudioClip) -> str:
    """Encode a clip as base64 text for the AI request."""
    if not isinstance(clip.data, (bytes, bytearray)):
        raise AudioEncodingError("Audio data must be bytes")
    if len(clip.data) == 0:
        raise AudioEncodingError("Audio clip is empty")
    if not clip.mime_type or not clip.mime_type.startswith("audio/"):
        raise AudioEncodingError(f"Unsupported audio MIME type: {clip.mime_type!r}")
    return base64.b64encode(clip.data).decode("ascii")


def format_duration(seconds: int) -> str:
    """Recorder timer display, MM:SS."""
    minutes, secs = divmod(max(int(seconds), 0), 60)
    return f"{minutes:02d}:{secs:02d}"
