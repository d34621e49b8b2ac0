"""Client for the speech-to-text backend."""

import logging
from pathlib import Path

import httpx

from dashnav.errors import TranscriptionError


logger = logging.getLogger(__name__)

# The transcription backend rejects larger uploads
MAX_AUDIO_BYTES = 25 * 1024 * 1024


async def transcribe_audio(
    client: httpx.AsyncClient,
    audio_path: str | Path,
    base_url: str = "http://localhost:3001",
    translate: bool = True,
    timeout: float = 60.0,
) -> str:
    """
    Upload a recording and return the transcribed text.

    Args:
        client: HTTP client to send the request with
        audio_path: Path of the recorded audio file
        base_url: Base URL of the transcription backend
        translate: Translate to English instead of transcribing in the original language
        timeout: Request timeout in seconds

    Returns:
        The transcription, stripped of surrounding whitespace
    """
    path = Path(audio_path)
    if not path.is_file():
        raise TranscriptionError(f"No audio file at {path}")
    if path.stat().st_size > MAX_AUDIO_BYTES:
        raise TranscriptionError("Audio file must be less than 25MB")

    with path.open("rb") as audio:
        try:
            response = await client.post(
                f"{base_url.rstrip('/')}/transcribe",
                files={"audio": (path.name, audio)},
                data={"translate": "true" if translate else "false"},
                timeout=timeout,
            )
        except httpx.HTTPError as e:
            raise TranscriptionError(f"Could not reach transcription backend: {e}") from e

    if response.status_code != 200:
        raise TranscriptionError(f"Transcription failed: {response.status_code}")

    try:
        data = response.json()
    except ValueError as e:
        raise TranscriptionError("Transcription backend returned a malformed response") from e

    text = data.get("transcription") if isinstance(data, dict) else None
    if not isinstance(text, str):
        raise TranscriptionError("Transcription backend returned no transcription")

    logger.info("Transcribed %s: %r", path.name, text)
    return text.strip()
