from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse
from cineprep.config import settings
from cineprep.core.dependencies import get_current_user
from cineprep.core.rate_limit import limiter
from cineprep.database.supabase_client import get_supabase
from cineprep.modules.audio.schemas import (
    AudioGenerateRequest, AudioFallbackRequest, AudioResult, AudioFallbackResponse, VoicesResponse
)
from cineprep.modules.audio.service import AudioService, fallback_script, list_voices
from cineprep.modules.audio.tts_client import TTSError, TTSNotConfiguredError
from supabase import Client
from typing import Dict
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/audio", tags=["audio"])


def get_audio_service(supabase: Client = Depends(get_supabase)) -> AudioService:
    return AudioService(supabase)


@router.post("/generate", response_model=AudioResult, response_model_exclude_none=True)
@limiter.limit(settings.generation_rate_limit)
async def generate_audio(
    request: Request,
    body: AudioGenerateRequest,
    current_user: Dict = Depends(get_current_user),
    service: AudioService = Depends(get_audio_service)
):
    """Narrate a lore summary with Qwen TTS"""
    try:
        return await run_in_threadpool(service.generate, body, current_user)
    except TTSNotConfiguredError as e:
        logger.error(f"Audio generation unavailable: {e}")
        raise HTTPException(status_code=503, detail={"error": str(e), "fallback_available": True})
    except TTSError as e:
        logger.error(f"Audio generation error: {e}")
        raise HTTPException(status_code=502, detail={"error": str(e), "fallback_available": True})


@router.post("/generate-stream")
@limiter.limit(settings.generation_rate_limit)
async def generate_audio_stream(
    request: Request,
    body: AudioGenerateRequest,
    current_user: Dict = Depends(get_current_user),
    service: AudioService = Depends(get_audio_service)
):
    """Proxy the TTS server-sent event stream"""
    try:
        chunks = await run_in_threadpool(service.stream, body, current_user)
    except TTSError as e:
        logger.error(f"Streaming error: {e}")
        raise HTTPException(status_code=502, detail="Streaming failed")
    return StreamingResponse(
        chunks,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.post("/generate-fallback", response_model=AudioFallbackResponse)
async def generate_audio_fallback(body: AudioFallbackRequest):
    """Browser speech synthesis instructions, no API call"""
    return fallback_script(body.narrative)


@router.get("/voices", response_model=VoicesResponse)
async def get_voices():
    return list_voices()
