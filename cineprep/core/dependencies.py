"""
Core dependencies for route protection and quota checking
"""

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from cineprep.database.supabase_client import get_supabase
from cineprep.modules.auth.service import AuthService
from cineprep.modules.membership.schemas import QuotaStatus, UsageAction
from cineprep.modules.membership.service import MembershipService
from supabase import Client
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_membership_service(supabase: Client = Depends(get_supabase)) -> MembershipService:
    return MembershipService(supabase)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict:
    """Resolve the Bearer token to {"id", "email"} of an active user"""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No authentication token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return auth_service.get_current_user(credentials.credentials)


def require_quota(action: UsageAction):
    """Factory function to create a plan quota check dependency"""
    def check_quota(
        user_data: Dict = Depends(get_current_user),
        membership_service: MembershipService = Depends(get_membership_service)
    ) -> QuotaStatus:
        return membership_service.check_limit(user_data["id"], action)
    return check_quota
