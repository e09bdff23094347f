from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from cineprep.config import settings
from cineprep.core.dependencies import get_current_user, require_quota
from cineprep.core.rate_limit import limiter
from cineprep.database.supabase_client import get_supabase
from cineprep.modules.lore import metrics
from cineprep.modules.lore.qwen_client import QwenAPIError, QwenNotConfiguredError, LoreParseError
from cineprep.modules.lore.schemas import (
    LoreGenerateRequest, HistoryResponse, TokenStatsResponse, UserAnalysisDetail
)
from cineprep.modules.lore.service import LoreService
from cineprep.modules.membership.schemas import QuotaStatus
from supabase import Client
from typing import Dict, Any
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/lore", tags=["lore"])


def get_lore_service(supabase: Client = Depends(get_supabase)) -> LoreService:
    return LoreService(supabase)


@router.post("/generate")
@limiter.limit(settings.generation_rate_limit)
async def generate_lore(
    request: Request,
    body: LoreGenerateRequest,
    current_user: Dict = Depends(get_current_user),
    quota: QuotaStatus = Depends(require_quota("analysis")),
    service: LoreService = Depends(get_lore_service)
) -> Dict[str, Any]:
    """Spoiler-free summary of the movies preceding currentMovie"""
    try:
        return await run_in_threadpool(service.generate, current_user["id"], body, quota)
    except QwenNotConfiguredError as e:
        logger.error(f"Lore generation unavailable: {e}")
        raise HTTPException(status_code=503, detail="AI generation is not configured")
    except (QwenAPIError, LoreParseError) as e:
        logger.error(f"Lore generation failed: {e}")
        raise HTTPException(status_code=502, detail={"error": "Failed to generate lore", "message": str(e)})


@router.get("/history", response_model=HistoryResponse)
async def get_history(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: Dict = Depends(get_current_user),
    service: LoreService = Depends(get_lore_service)
):
    """Analyses of the current user, newest first"""
    return service.get_history(current_user["id"], limit, offset)


@router.get("/stats", response_model=TokenStatsResponse)
async def get_stats():
    """Process-wide token usage since startup"""
    return metrics.token_stats()


@router.get("/{analysis_id}", response_model=UserAnalysisDetail)
async def get_analysis(
    analysis_id: str,
    current_user: Dict = Depends(get_current_user),
    service: LoreService = Depends(get_lore_service)
):
    return service.get_analysis(current_user["id"], analysis_id)
