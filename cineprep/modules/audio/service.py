from supabase import Client
from cineprep.modules.audio.schemas import (
    AudioGenerateRequest, AudioResult, AudioFallbackResponse, Voice, VoicesResponse
)
from cineprep.modules.audio.tts_client import TTSClient, truncate_narrative
from cineprep.modules.membership.service import MembershipService
from fastapi import HTTPException
from typing import Dict, Iterator, Optional
import logging

logger = logging.getLogger(__name__)

AVAILABLE_VOICES = [
    Voice(name="Cherry", language="English", gender="Female"),
    Voice(name="Chelsie", language="English", gender="Female"),
    Voice(name="Ethan", language="English", gender="Male"),
    Voice(name="Serena", language="English", gender="Female"),
    Voice(name="Dylan", language="English", gender="Male"),
    Voice(name="Jada", language="English", gender="Female"),
    Voice(name="Sunny", language="English", gender="Male"),
]

SUPPORTED_LANGUAGES = [
    "English", "Spanish", "Chinese", "Japanese", "Korean",
    "French", "German", "Russian", "Arabic", "Portuguese",
]


class AudioService:
    def __init__(
        self,
        supabase: Client,
        tts: Optional[TTSClient] = None,
        membership: Optional[MembershipService] = None
    ):
        self.supabase = supabase
        self.tts = tts or TTSClient()
        self.membership = membership or MembershipService(supabase)

    def generate(self, request: AudioGenerateRequest, user: Dict) -> AudioResult:
        """
        Narrate request.narrative for `user`.

        The audio quota is checked before the upstream call; the generation is
        counted and recorded after it. TTSError propagates to the caller.
        """
        if not request.narrative or not request.movie_title:
            raise HTTPException(status_code=400, detail="Missing required fields: narrative and movieTitle")

        self.membership.check_limit(user["id"], "audio")

        text = truncate_narrative(request.narrative)
        if len(text) != len(request.narrative):
            logger.warning(f"Narrative too long ({len(request.narrative)} chars), truncated to {len(text)}")

        logger.info(f"Generating audio for: {request.movie_title}")
        result = self.tts.synthesize(text)

        self.membership.increment_usage(user["id"], "audio", 1)
        self._record_generation(user["id"], request.movie_title, len(text), result)
        return result

    def _record_generation(self, user_id: str, movie_title: str, chars: int, result: AudioResult) -> None:
        try:
            self.supabase.table("audio_generations").insert({
                "user_id": user_id,
                "movie_title": movie_title,
                "narrative_chars": chars,
                "source": result.source,
                "audio_url": result.audio_url,
                "status": "ready",
            }).execute()
        except Exception as e:
            logger.error(f"Error recording audio generation for user {user_id}: {e}")

    def stream(self, request: AudioGenerateRequest, user: Dict) -> Iterator[bytes]:
        """Open the upstream SSE stream; one audio credit is charged once it is open."""
        if not request.narrative or not request.movie_title:
            raise HTTPException(status_code=400, detail="Missing required fields")
        self.membership.check_limit(user["id"], "audio")
        chunks = self.tts.stream(request.narrative)
        self.membership.increment_usage(user["id"], "audio", 1)
        return chunks


def fallback_script(narrative: Optional[str]) -> AudioFallbackResponse:
    """Script for browser-side speech synthesis when TTS is unavailable."""
    if not narrative:
        raise HTTPException(status_code=400, detail="Missing narrative")
    return AudioFallbackResponse(script=narrative)


def list_voices() -> VoicesResponse:
    return VoicesResponse(
        available_voices=AVAILABLE_VOICES,
        note="Qwen3-TTS supports 49 character voices and 10 languages",
        supported_languages=SUPPORTED_LANGUAGES,
    )
