"""
Prometheus counters for lore generation.

Process-wide totals for requests, tokens and cache hits. Exposed on /metrics
and summarised by GET /api/lore/stats.
"""

from prometheus_client import REGISTRY, Counter

from cineprep.modules.lore.qwen_client import calculate_cost
from cineprep.modules.lore.schemas import TokenStatsResponse

lore_requests_total = Counter(
    "cineprep_lore_requests",
    "Lore analyses generated by the LLM",
)
lore_tokens_total = Counter(
    "cineprep_lore_tokens",
    "Tokens consumed by lore generation",
)
lore_cache_hits_total = Counter(
    "cineprep_lore_cache_hits",
    "Lore analyses served from lore_cache",
)


def record_generation(total_tokens: int) -> None:
    lore_requests_total.inc()
    if total_tokens > 0:
        lore_tokens_total.inc(total_tokens)


def record_cache_hit() -> None:
    lore_cache_hits_total.inc()


def _sample(name: str) -> int:
    return int(REGISTRY.get_sample_value(name) or 0)


def token_stats() -> TokenStatsResponse:
    requests_count = _sample("cineprep_lore_requests_total")
    tokens = _sample("cineprep_lore_tokens_total")
    return TokenStatsResponse(
        total_requests=requests_count,
        total_tokens_used=tokens,
        average_tokens_per_request=round(tokens / requests_count) if requests_count else 0,
        estimated_total_cost=calculate_cost(tokens),
    )
