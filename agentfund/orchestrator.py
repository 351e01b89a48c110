"""
Funding flow for one agent: evaluate → (optional) prove → pay → outcome.

One call = one attempt. No retries, no locking, nothing kept between calls;
the caller re-runs after outcome.reevaluate_in_ms and owns retry policy.
Collaborator exceptions propagate unchanged.

Pluggable steps are plain callables taking (context, decision):
  parameter_builder      -> ContractFunctionParameters
  memo_builder           -> memo string or None
  proof_request_builder  -> FundingProofRequest or None (None skips the proof)
"""

import logging
from typing import Callable, Optional

from agentfund.evaluator import evaluate_funding
from agentfund.ledger.contract import DEFAULT_FUNCTION_NAME, FundingContractGateway
from agentfund.ledger.parameters import ContractFunctionParameters
from agentfund.ledger.units import hbar_to_tinybars
from agentfund.proof import FundingProofProvider
from agentfund.schema import (
    AgentFundingContext,
    FundingDecision,
    FundingOutcome,
    FundingProofArtifact,
    FundingProofRequest,
)

logger = logging.getLogger(__name__)

ParameterBuilder = Callable[[AgentFundingContext, FundingDecision], ContractFunctionParameters]
MemoBuilder = Callable[[AgentFundingContext, FundingDecision], Optional[str]]
ProofRequestBuilder = Callable[[AgentFundingContext, FundingDecision], Optional[FundingProofRequest]]


def default_parameter_builder(context: AgentFundingContext, decision: FundingDecision) -> ContractFunctionParameters:
    """payForPlan(string contractAccountId, string planId, string agentId, int64 tinybars)."""
    return (
        ContractFunctionParameters()
        .add_string(context.profile.contract_account_id)
        .add_string(context.profile.plan_id)
        .add_string(context.profile.agent_id)
        .add_int64(hbar_to_tinybars(decision.top_up_amount))
    )


class FundingOrchestrator:
    def __init__(
        self,
        contract_service: FundingContractGateway,
        contract_function_name: str = DEFAULT_FUNCTION_NAME,
        parameter_builder: Optional[ParameterBuilder] = None,
        memo_builder: Optional[MemoBuilder] = None,
        proof_service: Optional[FundingProofProvider] = None,
        proof_request_builder: Optional[ProofRequestBuilder] = None,
        require_proof_success: bool = True,
    ):
        self.contract_service = contract_service
        self.contract_function_name = contract_function_name or DEFAULT_FUNCTION_NAME
        self.parameter_builder = parameter_builder or default_parameter_builder
        self.memo_builder = memo_builder
        self.proof_service = proof_service
        self.proof_request_builder = proof_request_builder
        self.require_proof_success = require_proof_success

    async def handle_agent_funding(self, context: AgentFundingContext) -> FundingOutcome:
        profile = context.profile
        decision = evaluate_funding(context)
        logger.info("%s", decision.reason)

        if not decision.should_fund or decision.top_up_amount <= 0:
            return FundingOutcome(
                **decision.model_dump(),
                executed=False,
                metadata={
                    "agent_id": profile.agent_id,
                    "contract_account_id": profile.contract_account_id,
                    "proof_status": "skipped",
                },
            )

        proof_artifact: Optional[FundingProofArtifact] = None
        if self.proof_service is not None and self.proof_request_builder is not None:
            proof_request = self.proof_request_builder(context, decision)
            if proof_request is not None:
                proof_artifact = await self.proof_service.generate_funding_proof(proof_request)
                if self.require_proof_success and proof_artifact.status != "success":
                    detail = f" ({proof_artifact.reason})" if proof_artifact.reason else ""
                    logger.info(
                        "Funding for agent %s held back: proof %s%s",
                        profile.agent_id,
                        proof_artifact.status,
                        detail,
                    )
                    return FundingOutcome(
                        **decision.model_dump(exclude={"reason"}),
                        reason=f"{decision.reason} Proof status: {proof_artifact.status}{detail}.",
                        executed=False,
                        metadata={
                            "agent_id": profile.agent_id,
                            "plan_id": profile.plan_id,
                            "contract_account_id": profile.contract_account_id,
                            "proof_status": proof_artifact.status,
                        },
                        proof_artifact=proof_artifact,
                    )

        parameters = self.parameter_builder(context, decision)
        memo = self.memo_builder(context, decision) if self.memo_builder else None
        payable_amount = hbar_to_tinybars(decision.top_up_amount)

        execution = await self.contract_service.execute_funding_call(
            self.contract_function_name,
            parameters,
            payable_amount=payable_amount,
            memo=memo,
            metadata={
                "agent_id": profile.agent_id,
                "plan_id": profile.plan_id,
                "requested_top_up": decision.top_up_amount,
            },
        )

        return FundingOutcome(
            **decision.model_dump(),
            executed=execution.executed,
            transaction_id=execution.transaction_id,
            status=execution.status,
            message=execution.message,
            metadata={
                **(execution.metadata or {}),
                "proof_status": proof_artifact.status if proof_artifact else "skipped",
            },
            proof_artifact=proof_artifact,
        )
