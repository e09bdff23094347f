from supabase import Client
from cineprep.modules.membership.schemas import (
    MembershipResponse, MembershipWithUsage, PlanResponse, QuotaStatus,
    UsageAction, UsageResponse, UserStats, CurrentMonthStats
)
from cineprep.modules.preferences.service import DEFAULT_PREFERENCES
from fastapi import HTTPException
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Any, Optional, Tuple
import calendar
import logging

logger = logging.getLogger(__name__)

FREE_PLAN_DEFAULTS: Dict[str, Any] = {
    "name": "Free",
    "slug": "free",
    "description": "Plan gratuito",
    "price_monthly": 0,
    "price_yearly": 0,
    "max_analyses_per_month": 3,
    "max_audio_generations_per_month": 0,
    "can_access_premium_voices": False,
    "can_force_regenerate": False,
    "priority_queue": False,
    "features": [],
    "is_active": True,
}

USAGE_COLUMNS = {"analysis": "analyses_generated", "audio": "audio_generated"}
LIMIT_COLUMNS = {"analysis": "max_analyses_per_month", "audio": "max_audio_generations_per_month"}

# Compare-and-set attempts for usage counters before giving up with 409
_MAX_UPDATE_ATTEMPTS = 3


def current_period(today: Optional[date] = None) -> Tuple[date, date]:
    """First and last day of the calendar month containing `today`."""
    today = today or date.today()
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MembershipService:
    """Plans, memberships, per-month usage counters and provisioning of new users."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _free_plan_row(self) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("plans")\
            .select("*")\
            .eq("slug", "free")\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def _plan_row(self, plan_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("plans")\
            .select("*")\
            .eq("id", plan_id)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def _active_membership_row(self, user_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("memberships")\
            .select("*")\
            .eq("user_id", user_id)\
            .eq("status", "active")\
            .order("created_at", desc=True)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def _current_usage_row(self, user_id: str) -> Optional[Dict[str, Any]]:
        today = date.today().isoformat()
        result = self.supabase.table("usage_tracking")\
            .select("*")\
            .eq("user_id", user_id)\
            .lte("period_start", today)\
            .gte("period_end", today)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    # ------------------------------------------------------------------
    # Provisioning (INSERT ... ON CONFLICT DO NOTHING, then read back)
    # ------------------------------------------------------------------

    def ensure_free_plan(self) -> Dict[str, Any]:
        plan = self._free_plan_row()
        if plan:
            return plan
        logger.info("Free plan missing, creating it with default limits")
        self.supabase.table("plans")\
            .upsert(FREE_PLAN_DEFAULTS, on_conflict="slug", ignore_duplicates=True)\
            .execute()
        plan = self._free_plan_row()
        if not plan:
            raise HTTPException(status_code=500, detail="Failed to provision free plan")
        return plan

    def ensure_active_membership(self, user_id: str, plan_id: str) -> Dict[str, Any]:
        membership = self._active_membership_row(user_id)
        if membership:
            return membership
        start = _utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        end = start + timedelta(days=365)
        self.supabase.table("memberships").upsert({
            "user_id": user_id,
            "plan_id": plan_id,
            "status": "active",
            "billing_cycle": "yearly",
            "current_period_start": start.isoformat(),
            "current_period_end": end.isoformat(),
            "cancel_at_period_end": False,
        }, on_conflict="user_id,plan_id,current_period_start", ignore_duplicates=True).execute()
        membership = self._active_membership_row(user_id)
        if not membership:
            raise HTTPException(status_code=500, detail="Failed to provision membership")
        logger.info(f"Active membership ready for user {user_id}")
        return membership

    def ensure_usage_row(self, user_id: str) -> Dict[str, Any]:
        usage = self._current_usage_row(user_id)
        if usage:
            return usage
        period_start, period_end = current_period()
        self.supabase.table("usage_tracking").upsert({
            "user_id": user_id,
            "period_start": period_start.isoformat(),
            "period_end": period_end.isoformat(),
            "analyses_generated": 0,
            "audio_generated": 0,
            "tokens_consumed": 0,
            "last_reset_at": _utcnow().isoformat(),
        }, on_conflict="user_id,period_start", ignore_duplicates=True).execute()
        usage = self._current_usage_row(user_id)
        if not usage:
            raise HTTPException(status_code=500, detail="Failed to provision usage tracking")
        return usage

    def ensure_preferences(self, user_id: str) -> None:
        self.supabase.table("user_preferences")\
            .upsert({"user_id": user_id, **DEFAULT_PREFERENCES}, on_conflict="user_id", ignore_duplicates=True)\
            .execute()

    def provision_user(self, user_id: str) -> None:
        """Free plan, active membership, current usage row and default preferences."""
        plan = self.ensure_free_plan()
        self.ensure_active_membership(user_id, plan["id"])
        self.ensure_usage_row(user_id)
        self.ensure_preferences(user_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_membership(self, user_id: str) -> MembershipWithUsage:
        """Active membership with its plan and the current period's usage."""
        try:
            membership = self._active_membership_row(user_id)
            if not membership:
                raise HTTPException(status_code=404, detail="No active membership found for user")
            plan = self._plan_row(membership["plan_id"])
            if not plan:
                raise HTTPException(status_code=404, detail="Plan not found for membership")
            usage = self._current_usage_row(user_id) or {}
            return MembershipWithUsage(
                membership=MembershipResponse(**membership, plan=PlanResponse(**plan)),
                usage=UsageResponse(**usage),
            )
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error fetching membership: {e}")
            raise HTTPException(status_code=500, detail="Failed to fetch membership data")

    def get_usage(self, user_id: str) -> UsageResponse:
        return UsageResponse(**self.ensure_usage_row(user_id))

    def get_quota(self, user_id: str, action: UsageAction) -> QuotaStatus:
        membership = self._active_membership_row(user_id)
        if not membership:
            raise HTTPException(status_code=403, detail="No active membership found")
        plan = self._plan_row(membership["plan_id"])
        if not plan:
            raise HTTPException(status_code=403, detail="No active membership found")
        usage = self._current_usage_row(user_id) or {}
        return QuotaStatus(
            action=action,
            plan_slug=plan.get("slug", ""),
            limit=plan.get(LIMIT_COLUMNS[action], 0),
            used=usage.get(USAGE_COLUMNS[action]) or 0,
            can_force_regenerate=bool(plan.get("can_force_regenerate")),
        )

    def check_limit(self, user_id: str, action: UsageAction) -> QuotaStatus:
        """Raise 403 "Limit Reached" when the plan quota for `action` is used up."""
        quota = self.get_quota(user_id, action)
        if quota.exhausted:
            logger.info(f"User {user_id} reached {action} limit ({quota.used}/{quota.limit})")
            raise HTTPException(status_code=403, detail=quota.limit_reached_detail())
        return quota

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def increment_usage(self, user_id: str, action: UsageAction, amount: int = 1, tokens: int = 0) -> UsageResponse:
        """Add `amount` to the action counter (and `tokens` to tokens_consumed) for the current period."""
        column = USAGE_COLUMNS[action]
        for _ in range(_MAX_UPDATE_ATTEMPTS):
            row = self.ensure_usage_row(user_id)
            used = row.get(column) or 0
            update = {column: used + amount, "updated_at": _utcnow().isoformat()}
            if tokens:
                update["tokens_consumed"] = (row.get("tokens_consumed") or 0) + tokens
            result = self.supabase.table("usage_tracking")\
                .update(update)\
                .eq("id", row["id"])\
                .eq(column, used)\
                .execute()
            if result.data:
                return UsageResponse(**result.data[0])
            logger.warning(f"Usage row for user {user_id} changed during update, retrying")
        raise HTTPException(status_code=409, detail="Usage counter changed concurrently, try again")

    def get_stats(self, user_id: str) -> UserStats:
        try:
            total_analyses = self.supabase.table("user_analyses")\
                .select("id", count="exact")\
                .eq("user_id", user_id)\
                .execute()
            favorite_analyses = self.supabase.table("user_analyses")\
                .select("id", count="exact")\
                .eq("user_id", user_id)\
                .eq("is_favorite", True)\
                .execute()
            audio = self.supabase.table("audio_generations")\
                .select("id", count="exact")\
                .eq("user_id", user_id)\
                .eq("status", "ready")\
                .execute()
            usage_rows = self.supabase.table("usage_tracking")\
                .select("tokens_consumed")\
                .eq("user_id", user_id)\
                .execute()
            titles = self.supabase.table("user_analyses")\
                .select("movie_title")\
                .eq("user_id", user_id)\
                .execute()

            current = self._current_usage_row(user_id) or {}
            title_counts = Counter(r["movie_title"] for r in (titles.data or []) if r.get("movie_title"))
            most_analyzed = title_counts.most_common(1)[0][0] if title_counts else None

            return UserStats(
                total_analyses=total_analyses.count or 0,
                favorite_analyses=favorite_analyses.count or 0,
                total_audio_generated=audio.count or 0,
                total_tokens_consumed=sum((r.get("tokens_consumed") or 0) for r in (usage_rows.data or [])),
                current_month=CurrentMonthStats(
                    analyses=current.get("analyses_generated") or 0,
                    audio=current.get("audio_generated") or 0,
                ),
                most_analyzed_movie=most_analyzed,
            )
        except Exception as e:
            logger.error(f"Error fetching user stats: {e}")
            raise HTTPException(status_code=500, detail="Failed to fetch user statistics")
