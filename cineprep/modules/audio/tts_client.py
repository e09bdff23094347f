"""
Qwen TTS client.

The upstream API has answered with several payload shapes over time
(`output.audio_url`, `output.audio.url`, `output.audio.data`, or a bare
base64 string in `output.audio`). `normalize_tts_output` folds all of them
into one AudioResult so callers never branch on the raw response.
"""

import logging
from typing import Any, Dict, Iterator, Optional

import requests

from cineprep.config import settings
from cineprep.modules.audio.schemas import AudioResult

logger = logging.getLogger(__name__)

SERVER_NARRATIVE_LIMIT = 590
# The client trims earlier so the server cut rarely applies
CLIENT_NARRATIVE_LIMIT = 580

STREAM_VOICE = "Cherry"


class TTSError(Exception):
    """Raised when the TTS API fails or returns no audio."""


class TTSNotConfiguredError(TTSError):
    """Raised when QWEN_API_KEY is missing."""


def truncate_narrative(narrative: str, limit: int = SERVER_NARRATIVE_LIMIT) -> str:
    """Cut `narrative` to at most `limit` chars, preferring a sentence end.

    Without a sentence end the text is cut at the last space and gets "...",
    and without a space the hard cut gets "..." appended.
    """
    if len(narrative) <= limit:
        return narrative

    truncated = narrative[:limit]
    cut_index = max(truncated.rfind("."), truncated.rfind("!"), truncated.rfind("?"))
    if cut_index > 0:
        return truncated[:cut_index + 1]

    last_space = truncated.rfind(" ")
    if last_space > 0:
        return truncated[:last_space] + "..."
    return truncated + "..."


def normalize_tts_output(data: Dict[str, Any], audio_format: str = "mp3") -> AudioResult:
    output = data.get("output") or {}
    duration = output.get("audio_duration") or "unknown"

    if output.get("audio_url"):
        return AudioResult(source="url", audio_url=output["audio_url"], duration=duration, format=audio_format)

    audio = output.get("audio")
    if isinstance(audio, dict):
        if audio.get("url"):
            return AudioResult(source="url", audio_url=audio["url"], duration=duration, format=audio_format)
        if audio.get("data"):
            return AudioResult(source="base64", audio_base64=audio["data"], duration=duration, format=audio_format)
    elif isinstance(audio, str) and audio:
        return AudioResult(source="base64", audio_base64=audio, duration=duration, format=audio_format)

    raise TTSError("No audio data in response")


class TTSClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        voice: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        self.api_key = api_key if api_key is not None else settings.qwen_api_key
        self.api_url = api_url or settings.qwen_tts_url
        self.model = model or settings.qwen_tts_model
        self.voice = voice or settings.qwen_tts_voice
        self.timeout = timeout or settings.qwen_timeout_seconds

    def _headers(self, stream: bool = False) -> Dict[str, str]:
        if not self.api_key:
            raise TTSNotConfiguredError("QWEN_API_KEY not configured")
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if stream:
            headers["X-DashScope-SSE"] = "enable"
        return headers

    def synthesize(self, text: str) -> AudioResult:
        """One TTS request for `text` (already truncated), no retry."""
        headers = self._headers()
        try:
            response = requests.post(
                self.api_url,
                headers=headers,
                json={
                    "model": self.model,
                    "input": {"text": text},
                    "parameters": {
                        "voice": self.voice,
                        "language_type": "Latino",
                        "format": "mp3",
                        "sample_rate": 24000,
                    },
                },
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise TTSError(f"TTS API Error: {e}") from e

        if not response.ok:
            logger.error(f"TTS Error: {response.text}")
            raise TTSError(f"TTS API Error: {response.status_code} - {response.text}")

        return normalize_tts_output(response.json())

    def stream(self, text: str) -> Iterator[bytes]:
        """Open an SSE TTS request and return an iterator over the raw event bytes.

        The request is sent before returning so upstream errors raise here,
        not halfway through the response body.
        """
        headers = self._headers(stream=True)
        try:
            response = requests.post(
                self.api_url,
                headers=headers,
                json={
                    "model": self.model,
                    "input": {"text": text},
                    "parameters": {
                        "voice": STREAM_VOICE,
                        "language_type": "Spanish",
                        "format": "mp3",
                        "sample_rate": 24000,
                        "incremental_output": True,
                    },
                },
                timeout=self.timeout,
                stream=True,
            )
        except requests.exceptions.RequestException as e:
            raise TTSError(f"TTS Error: {e}") from e

        if not response.ok:
            response.close()
            raise TTSError(f"TTS Error: {response.status_code}")

        def _chunks() -> Iterator[bytes]:
            try:
                for chunk in response.iter_content(chunk_size=None):
                    if chunk:
                        yield chunk
            finally:
                response.close()

        return _chunks()
