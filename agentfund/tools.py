"""
Single-call helpers for services and scripts.

fund_agent() = load config from env + build orchestrator + one funding attempt.
One entry point so a scheduler doesn't need to wire the ledger handle, gateway
and proof service itself.
"""

from typing import Any, Optional

from agentfund.config import FundingConfig, load_config
from agentfund.ledger.client import LedgerClientHandle
from agentfund.ledger.contract import AgentContractService
from agentfund.orchestrator import FundingOrchestrator, ProofRequestBuilder
from agentfund.proof import VlayerProofService
from agentfund.schema import (
    AgentFundingContext,
    AgentFundingSnapshot,
    AgentProfile,
    FundingDecision,
    FundingOutcome,
    FundingProofRequest,
)


def default_proof_request_builder(proof_url: Optional[str]) -> ProofRequestBuilder:
    """
    Proof request that notarizes a POST of the decision and snapshot to proof_url.
    Without a proof_url the builder returns None and the proof step is skipped.
    """

    def build(context: AgentFundingContext, decision: FundingDecision) -> Optional[FundingProofRequest]:
        if not proof_url:
            return None
        profile = context.profile
        snapshot = context.snapshot.model_dump()
        snapshot["last_funding_at"] = (
            context.snapshot.last_funding_at.isoformat() if context.snapshot.last_funding_at else None
        )
        return FundingProofRequest(
            url=proof_url,
            headers={"Content-Type": "application/json"},
            body={
                "agent_id": profile.agent_id,
                "plan_id": profile.plan_id,
                "contract_account_id": profile.contract_account_id,
                "decision": {
                    "top_up_amount": decision.top_up_amount,
                    "reason": decision.reason,
                    "reevaluate_in_ms": decision.reevaluate_in_ms,
                },
                "snapshot": snapshot,
            },
            metadata={"agent_id": profile.agent_id, "plan_id": profile.plan_id},
        )

    return build


def build_orchestrator(
    config: FundingConfig,
    handle: Optional[LedgerClientHandle] = None,
    **options: Any,
) -> FundingOrchestrator:
    """
    Wire the default gateway and vlayer proof service from config.

    handle: reuse an existing ledger handle (one per process); built from config if None.
    **options: passed to FundingOrchestrator (e.g. memo_builder, parameter_builder).
    """
    handle = handle or LedgerClientHandle.from_config(config)
    options.setdefault("proof_service", VlayerProofService(config.vlayer))
    options.setdefault("proof_request_builder", default_proof_request_builder(config.vlayer.proof_url))
    options.setdefault("require_proof_success", config.require_proof_success)
    return FundingOrchestrator(AgentContractService.from_config(config, handle), **options)


async def fund_agent(
    context: AgentFundingContext,
    config: Optional[FundingConfig] = None,
    handle: Optional[LedgerClientHandle] = None,
    **options: Any,
) -> FundingOutcome:
    """
    Evaluate one agent and fund it if needed. Uses HEDERA_* / VLAYER_* from env
    (and .env) when config is not given.

    handle: the process-wide LedgerClientHandle. Without it every call builds a
    fresh handle (new connection, new nonce lock), so long-running callers that
    fund more than once should create one handle and pass it each time.

    Returns the FundingOutcome; ledger or proof transport failures raise.
    """
    config = config or load_config()
    orchestrator = build_orchestrator(config, handle, **options)
    return await orchestrator.handle_agent_funding(context)


def sample_context() -> AgentFundingContext:
    """Demo agent: low balance, depleting in 1.5h, busy. Evaluates to a 6 HBAR top-up."""
    return AgentFundingContext(
        profile=AgentProfile(agent_id="agent-sample", contract_account_id="0.0.123456", plan_id="starter"),
        snapshot=AgentFundingSnapshot(
            current_balance=2,
            min_buffer=5,
            max_buffer=20,
            plan_cost=3,
            demand_score=0.8,
            last_funding_at=None,
            projected_hours_until_depletion=1.5,
        ),
    )
