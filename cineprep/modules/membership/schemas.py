from pydantic import BaseModel, Field
from typing import Optional, Literal, Any, Dict
from datetime import date, datetime


UsageAction = Literal["analysis", "audio"]


class PlanResponse(BaseModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    price_monthly: float = 0
    price_yearly: float = 0
    max_analyses_per_month: int
    max_audio_generations_per_month: int
    can_access_premium_voices: bool = False
    can_force_regenerate: bool = False
    priority_queue: bool = False
    features: Optional[Any] = None


class MembershipResponse(BaseModel):
    id: str
    status: str
    billing_cycle: str
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool = False
    plan: PlanResponse


class UsageResponse(BaseModel):
    analyses_generated: int = 0
    audio_generated: int = 0
    tokens_consumed: int = 0
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    last_reset_at: Optional[datetime] = None


class MembershipWithUsage(BaseModel):
    membership: MembershipResponse
    usage: UsageResponse


class UsageEnvelope(BaseModel):
    usage: UsageResponse


class UsageIncrementRequest(BaseModel):
    action: UsageAction
    amount: int = Field(default=1, ge=1)


class UsageIncrementResponse(BaseModel):
    success: bool = True
    usage: UsageResponse


class CurrentMonthStats(BaseModel):
    analyses: int = 0
    audio: int = 0


class UserStats(BaseModel):
    total_analyses: int
    favorite_analyses: int
    total_audio_generated: int
    total_tokens_consumed: int
    current_month: CurrentMonthStats
    most_analyzed_movie: Optional[str] = None


class UserStatsResponse(BaseModel):
    stats: UserStats


class QuotaStatus(BaseModel):
    """Plan limits and current usage for one action."""
    action: UsageAction
    plan_slug: str
    limit: int
    used: int
    can_force_regenerate: bool = False

    @property
    def unlimited(self) -> bool:
        return self.limit == -1

    @property
    def remaining(self) -> int:
        if self.unlimited:
            return -1
        return max(0, self.limit - self.used)

    @property
    def exhausted(self) -> bool:
        return not self.unlimited and self.used >= self.limit

    def limit_reached_detail(self) -> Dict[str, Any]:
        noun = "analyses" if self.action == "analysis" else "audio generations"
        return {
            "error": "Limit Reached",
            "message": f"You've used all {self.limit} {noun} this month. Upgrade to continue.",
            "usage": {"used": self.used, "limit": self.limit, "remaining": 0},
            "upgrade_url": "/pricing",
            "current_plan": self.plan_slug,
        }
