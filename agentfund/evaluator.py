"""
Funding policy: snapshot in, decision out. Pure; no I/O, no clock.

Fund when the agent is short (below min buffer, or depleting within 3h) AND
busy (demand >= 0.35). Top up toward two plan periods, capped at max buffer.
"""

from decimal import ROUND_HALF_UP, Context, Decimal

from agentfund.schema import AgentFundingContext, FundingDecision

MIN_DEMAND_SCORE = 0.35
DEPLETION_WARNING_HOURS = 3
DEFAULT_REEVALUATE_MS = 5 * 60 * 1000
MAX_REEVALUATE_MS = 30 * 60 * 1000
MIN_TOP_UP_HBAR = 0.01
TOP_UP_DECIMALS = 8

_MS_PER_HOUR = 60 * 60 * 1000
# wide enough for any finite float at 8 decimals
_EXACT = Context(prec=400)


def clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(value, maximum))


def round_half_up(value: float, decimals: int = 0) -> Decimal:
    """Round the exact binary value of a float; ties go up, not to even."""
    return Decimal(value).quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP, context=_EXACT)


def _reevaluate_ms(hours: float) -> int:
    return int(round_half_up(clamp(hours * _MS_PER_HOUR, DEFAULT_REEVALUATE_MS, MAX_REEVALUATE_MS)))


def evaluate_funding(context: AgentFundingContext) -> FundingDecision:
    """
    Decide whether to top up the agent and by how much.

    Re-check interval is the projected runway (halved when funding), pinned to
    5..30 minutes.
    """
    profile = context.profile
    snapshot = context.snapshot
    hours = snapshot.projected_hours_until_depletion

    buffer_deficit = (snapshot.min_buffer - snapshot.current_balance) > 0
    approaching_depletion = hours <= DEPLETION_WARNING_HOURS
    high_demand = snapshot.demand_score >= MIN_DEMAND_SCORE

    if not ((buffer_deficit or approaching_depletion) and high_demand):
        if buffer_deficit or approaching_depletion:
            why = f"demand score {snapshot.demand_score:g} below {MIN_DEMAND_SCORE}"
        else:
            why = "buffer healthy"
        return FundingDecision(
            should_fund=False,
            top_up_amount=0,
            reason=f"Agent {profile.agent_id} funding deferred: {why}.",
            reevaluate_in_ms=_reevaluate_ms(hours),
        )

    desired_balance = snapshot.current_balance + snapshot.plan_cost * 2
    target_balance = min(snapshot.max_buffer, desired_balance)
    max_possible_top_up = max(snapshot.max_buffer - snapshot.current_balance, snapshot.plan_cost)
    min_top_up = max(snapshot.plan_cost * 0.5, MIN_TOP_UP_HBAR)
    top_up = clamp(target_balance - snapshot.current_balance, min_top_up, max_possible_top_up)

    triggers = []
    if buffer_deficit:
        triggers.append("buffer deficit detected")
    if approaching_depletion:
        triggers.append(f"depletion projected in {hours:g}h")

    return FundingDecision(
        should_fund=True,
        top_up_amount=float(round_half_up(top_up, TOP_UP_DECIMALS)),
        reason=f"Funding approved for agent {profile.agent_id}: {' and '.join(triggers)}.",
        reevaluate_in_ms=_reevaluate_ms(hours * 0.5),
    )
