from pydantic import Field

from keygate.models.api_key import CamelModel


class UsageStatsResponse(CamelModel):
    total_requests: int
    today_requests: int
    total_tokens_in: int
    total_tokens_out: int
    avg_latency_ms: int
    by_endpoint: dict[str, int] = Field(default_factory=dict)
    by_status: dict[str, int] = Field(default_factory=dict)
    truncated: bool = False
    daily_quota: int | None = None
    remaining_today: int | None = None


class UsageResponse(CamelModel):
    key_id: str
    plan: str
    period: str
    stats: UsageStatsResponse
