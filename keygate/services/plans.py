from enum import Enum


class Plan(str, Enum):
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


# Calls per calendar day. Frozen onto each key at issuance.
PLAN_DAILY_QUOTAS: dict[Plan, int] = {
    Plan.FREE: 100,
    Plan.PRO: 1000,
    Plan.ENTERPRISE: 10000,
}

DEFAULT_PLAN = Plan.FREE


def resolve_plan(plan: str | Plan | None) -> tuple[Plan, int]:
    """Resolve a plan name to (plan, daily quota). Raises ValueError on unknown plans."""
    if plan is None or plan == "":
        plan = DEFAULT_PLAN
    try:
        resolved = Plan(plan)
    except ValueError:
        choices = ", ".join(p.value for p in Plan)
        raise ValueError(f"Unknown plan '{plan}'. Expected one of: {choices}") from None
    return resolved, PLAN_DAILY_QUOTAS[resolved]
