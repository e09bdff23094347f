from fastapi import APIRouter, Depends
from cineprep.database.supabase_client import get_supabase
from cineprep.modules.users.schemas import UserProfileUpdate, UserProfileResponse
from cineprep.modules.users.service import UserService
from cineprep.modules.membership.schemas import (
    MembershipWithUsage, UsageEnvelope, UsageIncrementRequest,
    UsageIncrementResponse, UserStatsResponse
)
from cineprep.modules.membership.service import MembershipService
from cineprep.core.dependencies import get_current_user, get_membership_service
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/user", tags=["user"])


def get_user_service(supabase: Client = Depends(get_supabase)) -> UserService:
    return UserService(supabase)


@router.get("/membership", response_model=MembershipWithUsage)
async def get_membership(
    current_user: Dict = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service)
):
    """Active membership, plan and current usage"""
    return service.get_membership(current_user["id"])


@router.get("/usage", response_model=UsageEnvelope)
async def get_usage(
    current_user: Dict = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service)
):
    """Current month usage only (lighter endpoint for frequent polling)"""
    return UsageEnvelope(usage=service.get_usage(current_user["id"]))


@router.post("/usage/increment", response_model=UsageIncrementResponse)
async def increment_usage(
    body: UsageIncrementRequest,
    current_user: Dict = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service)
):
    """Increment a usage counter after a successful action"""
    usage = service.increment_usage(current_user["id"], body.action, body.amount)
    return UsageIncrementResponse(usage=usage)


@router.get("/stats", response_model=UserStatsResponse)
async def get_stats(
    current_user: Dict = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service)
):
    """Overall statistics for the user"""
    return UserStatsResponse(stats=service.get_stats(current_user["id"]))


@router.get("/profile", response_model=UserProfileResponse)
async def get_profile(
    current_user: Dict = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    return service.get_profile(current_user["id"])


@router.put("/profile", response_model=UserProfileResponse)
async def update_profile(
    body: UserProfileUpdate,
    current_user: Dict = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    """Update display name / avatar"""
    return service.update_profile(current_user["id"], body)
