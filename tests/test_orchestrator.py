import asyncio

import pytest

from agentfund.ledger.client import LedgerClientHandle
from agentfund.ledger.contract import AgentContractService
from agentfund.ledger.parameters import ContractFunctionParameters
from agentfund.orchestrator import FundingOrchestrator, default_parameter_builder
from agentfund.evaluator import evaluate_funding
from agentfund.schema import FundingExecutionResult
from conftest import SCENARIO_B, FakeContractGateway, FakeProofService, make_context, proof_request_for


@pytest.mark.asyncio
async def test_no_funding_touches_no_collaborator(gateway):
    proofs = FakeProofService()
    orchestrator = FundingOrchestrator(gateway, proof_service=proofs, proof_request_builder=proof_request_for)
    context = make_context(**SCENARIO_B)

    outcome = await orchestrator.handle_agent_funding(context)

    assert outcome.should_fund is False
    assert outcome.executed is False
    assert outcome.proof_artifact is None
    assert outcome.metadata == {
        "agent_id": "agent-1",
        "contract_account_id": "0.0.4242",
        "proof_status": "skipped",
    }
    assert gateway.calls == []
    assert proofs.requests == []


@pytest.mark.asyncio
async def test_funds_with_default_parameters(gateway, context):
    outcome = await FundingOrchestrator(gateway).handle_agent_funding(context)

    assert len(gateway.calls) == 1
    call = gateway.calls[0]
    assert call["function_name"] == "payForPlan"
    assert call["payable_amount"] == 600_000_000
    assert call["memo"] is None
    assert call["parameters"].types == ["string", "string", "string", "int64"]
    assert call["parameters"].values == ["0.0.4242", "pro", "agent-1", 600_000_000]
    assert call["metadata"] == {"agent_id": "agent-1", "plan_id": "pro", "requested_top_up": 6.0}

    assert outcome.should_fund is True
    assert outcome.top_up_amount == 6.0
    assert outcome.executed is True
    assert outcome.transaction_id == "0xfeed"
    assert outcome.status == "SUCCESS"
    assert outcome.message == "Contract payForPlan executed with status SUCCESS"
    assert outcome.metadata["proof_status"] == "skipped"
    assert outcome.metadata["agent_id"] == "agent-1"
    assert outcome.proof_status == "skipped"


@pytest.mark.asyncio
async def test_failed_proof_blocks_payment(gateway, context):
    proofs = FakeProofService(status="failed", reason="vlayer cli exited with code 1")
    orchestrator = FundingOrchestrator(gateway, proof_service=proofs, proof_request_builder=proof_request_for)

    outcome = await orchestrator.handle_agent_funding(context)

    decision = evaluate_funding(context)
    assert gateway.calls == []
    assert len(proofs.requests) == 1
    assert outcome.should_fund is True
    assert outcome.executed is False
    assert outcome.top_up_amount == decision.top_up_amount
    assert outcome.reason == f"{decision.reason} Proof status: failed (vlayer cli exited with code 1)."
    assert outcome.metadata == {
        "agent_id": "agent-1",
        "plan_id": "pro",
        "contract_account_id": "0.0.4242",
        "proof_status": "failed",
    }
    assert outcome.proof_artifact is not None
    assert outcome.proof_artifact.status == "failed"


@pytest.mark.asyncio
async def test_skipped_proof_counts_as_not_successful(gateway, context):
    proofs = FakeProofService(status="skipped")
    orchestrator = FundingOrchestrator(gateway, proof_service=proofs, proof_request_builder=proof_request_for)

    outcome = await orchestrator.handle_agent_funding(context)

    assert gateway.calls == []
    assert outcome.reason.endswith("Proof status: skipped.")
    assert outcome.proof_status == "skipped"


@pytest.mark.asyncio
async def test_failed_proof_allowed_when_not_required(gateway, context):
    proofs = FakeProofService(status="failed", reason="notary down")
    orchestrator = FundingOrchestrator(
        gateway,
        proof_service=proofs,
        proof_request_builder=proof_request_for,
        require_proof_success=False,
    )

    outcome = await orchestrator.handle_agent_funding(context)

    assert len(gateway.calls) == 1
    assert outcome.executed is True
    assert outcome.metadata["proof_status"] == "failed"
    assert outcome.proof_artifact.status == "failed"


@pytest.mark.asyncio
async def test_successful_proof_attached_to_outcome(gateway, context):
    proofs = FakeProofService(status="success")
    orchestrator = FundingOrchestrator(gateway, proof_service=proofs, proof_request_builder=proof_request_for)

    outcome = await orchestrator.handle_agent_funding(context)

    assert len(gateway.calls) == 1
    assert outcome.proof_status == "success"
    assert outcome.proof_artifact.raw_proof == "proof-bytes"
    assert proofs.requests[0].url == "https://api.example.com/usage"


@pytest.mark.asyncio
async def test_builder_returning_none_skips_proof(gateway, context):
    proofs = FakeProofService(status="failed")
    orchestrator = FundingOrchestrator(
        gateway,
        proof_service=proofs,
        proof_request_builder=lambda context, decision: None,
    )

    outcome = await orchestrator.handle_agent_funding(context)

    assert proofs.requests == []
    assert len(gateway.calls) == 1
    assert outcome.proof_status == "skipped"
    assert outcome.proof_artifact is None


@pytest.mark.asyncio
async def test_proof_service_without_builder_is_unused(gateway, context):
    proofs = FakeProofService(status="failed")

    outcome = await FundingOrchestrator(gateway, proof_service=proofs).handle_agent_funding(context)

    assert proofs.requests == []
    assert outcome.executed is True


@pytest.mark.asyncio
async def test_custom_builders_and_function_name(gateway, context):
    seen = []

    def parameters(ctx, decision):
        seen.append(decision.top_up_amount)
        return ContractFunctionParameters().add_string(ctx.profile.agent_id)

    orchestrator = FundingOrchestrator(
        gateway,
        contract_function_name="topUp",
        parameter_builder=parameters,
        memo_builder=lambda ctx, decision: f"fund {ctx.profile.agent_id}",
    )

    await orchestrator.handle_agent_funding(context)

    call = gateway.calls[0]
    assert seen == [6.0]
    assert call["function_name"] == "topUp"
    assert call["parameters"].values == ["agent-1"]
    assert call["memo"] == "fund agent-1"


@pytest.mark.asyncio
async def test_dry_run_result_passes_through(context):
    gateway = FakeContractGateway(
        result=FundingExecutionResult(
            executed=False,
            message="DRY_RUN enabled: skipping contract call payForPlan",
            metadata={"agent_id": "agent-1", "memo": None},
        )
    )

    outcome = await FundingOrchestrator(gateway).handle_agent_funding(context)

    assert outcome.should_fund is True
    assert outcome.executed is False
    assert outcome.transaction_id is None
    assert outcome.message.startswith("DRY_RUN enabled")
    assert outcome.metadata == {"agent_id": "agent-1", "memo": None, "proof_status": "skipped"}


@pytest.mark.asyncio
async def test_gateway_error_propagates(context):
    gateway = FakeContractGateway(error=ConnectionError("relay unreachable"))

    with pytest.raises(ConnectionError, match="relay unreachable"):
        await FundingOrchestrator(gateway).handle_agent_funding(context)


@pytest.mark.asyncio
async def test_proof_error_propagates_before_payment(gateway, context):
    proofs = FakeProofService(error=FileNotFoundError("vlayer"))
    orchestrator = FundingOrchestrator(gateway, proof_service=proofs, proof_request_builder=proof_request_for)

    with pytest.raises(FileNotFoundError):
        await orchestrator.handle_agent_funding(context)
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_dry_run_service_never_opens_ledger(context):
    # Unknown network would fail on first use of the handle.
    handle = LedgerClientHandle("no-such-network", "0.0.1001", "not-a-key")
    service = AgentContractService(handle, "0.0.5005", dry_run=True)

    outcome = await FundingOrchestrator(service).handle_agent_funding(context)

    assert outcome.executed is False
    assert outcome.message == "DRY_RUN enabled: skipping contract call payForPlan"
    assert handle._web3 is None


@pytest.mark.asyncio
async def test_concurrent_agents_are_independent(gateway):
    orchestrator = FundingOrchestrator(gateway)
    contexts = [make_context(agent_id=f"agent-{i}") for i in range(3)] + [make_context("quiet", **SCENARIO_B)]

    outcomes = await asyncio.gather(*(orchestrator.handle_agent_funding(c) for c in contexts))

    assert [o.executed for o in outcomes] == [True, True, True, False]
    assert sorted(call["metadata"]["agent_id"] for call in gateway.calls) == ["agent-0", "agent-1", "agent-2"]


def test_default_parameter_builder_converts_to_tinybars(context):
    decision = evaluate_funding(make_context(current_balance=0, min_buffer=1, max_buffer=1000, plan_cost=0.123456789))
    params = default_parameter_builder(context, decision)
    assert params.values[-1] == 24_691_358
