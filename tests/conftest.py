from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from agentfund.schema import (
    AgentFundingContext,
    AgentFundingSnapshot,
    AgentProfile,
    FundingExecutionResult,
    FundingProofArtifact,
    FundingProofRequest,
)

# Well-known throwaway key (eth-account docs); never holds funds.
TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"

SCENARIO_A = dict(
    current_balance=2,
    min_buffer=5,
    max_buffer=20,
    plan_cost=3,
    demand_score=0.8,
    projected_hours_until_depletion=1.5,
)

SCENARIO_B = dict(
    current_balance=10,
    min_buffer=5,
    max_buffer=20,
    plan_cost=3,
    demand_score=0.1,
    projected_hours_until_depletion=10,
)


def make_context(agent_id: str = "agent-1", **snapshot: Any) -> AgentFundingContext:
    values = {**SCENARIO_A, **snapshot}
    return AgentFundingContext(
        profile=AgentProfile(agent_id=agent_id, contract_account_id="0.0.4242", plan_id="pro"),
        snapshot=AgentFundingSnapshot(**values),
    )


class FakeContractGateway:
    """Records funding calls; returns a canned result or raises."""

    def __init__(self, result: Optional[FundingExecutionResult] = None, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def execute_funding_call(
        self,
        function_name,
        parameters,
        payable_amount=None,
        memo=None,
        metadata=None,
        gas=None,
    ) -> FundingExecutionResult:
        self.calls.append(
            {
                "function_name": function_name,
                "parameters": parameters,
                "payable_amount": payable_amount,
                "memo": memo,
                "metadata": metadata,
            }
        )
        if self.error is not None:
            raise self.error
        if self.result is not None:
            return self.result
        return FundingExecutionResult(
            executed=True,
            transaction_id="0xfeed",
            status="SUCCESS",
            message=f"Contract {function_name} executed with status SUCCESS",
            metadata=dict(metadata or {}),
        )


class FakeProofService:
    """Returns an artifact with the given status; counts requests."""

    def __init__(self, status: str = "success", reason: Optional[str] = None, error: Optional[Exception] = None):
        self.status = status
        self.reason = reason
        self.error = error
        self.requests: List[FundingProofRequest] = []

    async def generate_funding_proof(self, request: FundingProofRequest) -> FundingProofArtifact:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return FundingProofArtifact(
            status=self.status,
            generated_at=datetime.now(timezone.utc),
            request_url=request.url,
            raw_proof="proof-bytes" if self.status == "success" else None,
            reason=self.reason,
            metadata=request.metadata,
        )


def proof_request_for(context: AgentFundingContext, decision) -> FundingProofRequest:
    return FundingProofRequest(url="https://api.example.com/usage", metadata={"agent_id": context.profile.agent_id})


@pytest.fixture
def context() -> AgentFundingContext:
    return make_context()


@pytest.fixture
def gateway() -> FakeContractGateway:
    return FakeContractGateway()


@pytest.fixture
def base_env() -> Dict[str, str]:
    return {
        "HEDERA_NETWORK": "testnet",
        "HEDERA_OPERATOR_ID": "0.0.1001",
        "HEDERA_OPERATOR_KEY": TEST_PRIVATE_KEY,
        "AGENT_CONTRACT_ID": "0.0.5005",
    }
