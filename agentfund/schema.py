"""
Funding schema for the evaluate → prove → pay flow.

Contract: caller builds an AgentFundingContext each cycle → evaluator returns a
FundingDecision → orchestrator optionally attaches a FundingProofArtifact and a
FundingExecutionResult → caller receives one FundingOutcome and re-checks after
reevaluate_in_ms.
"""

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

FundingProofStatus = Literal["success", "failed", "skipped"]


class AgentProfile(BaseModel):
    """Stable identifiers for the agent being funded."""

    model_config = ConfigDict(frozen=True)

    agent_id: str = Field(..., description="Stable identifier used internally to track the agent")
    contract_account_id: str = Field(..., description="Hedera account that owns the agent contract")
    plan_id: str = Field(..., description="Pricing plan identifier tied to the contract logic")


class AgentFundingSnapshot(BaseModel):
    """Point-in-time read of the agent's finances. Amounts are in HBAR."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    current_balance: float = Field(..., ge=0, description="Liquid balance available to the agent")
    min_buffer: float = Field(..., ge=0, description="Safety buffer to keep before the next top-up")
    max_buffer: float = Field(..., ge=0, description="Maximum balance we are comfortable holding")
    plan_cost: float = Field(..., ge=0, description="Cost of the active pricing plan per billing window")
    demand_score: float = Field(..., ge=0, le=1, description="Usage intensity computed elsewhere (0-1)")
    last_funding_at: Optional[datetime] = Field(None, description="When the last funding transaction settled")
    projected_hours_until_depletion: float = Field(
        ..., ge=0, description="Hours until the agent is expected to run out of funds"
    )


class AgentFundingContext(BaseModel):
    """Everything the evaluator needs for one cycle."""

    model_config = ConfigDict(frozen=True)

    profile: AgentProfile
    snapshot: AgentFundingSnapshot


class FundingDecision(BaseModel):
    """Evaluator output: whether to fund, how much, and when to look again."""

    model_config = ConfigDict(frozen=True)

    should_fund: bool
    top_up_amount: float = Field(..., ge=0, description="Amount in HBAR to move to the contract (8 dp)")
    reason: str
    reevaluate_in_ms: int = Field(..., description="Milliseconds until the agent should be evaluated again")


class FundingProofRequest(BaseModel):
    """What to notarize: an HTTP request replayed by the attestation CLI."""

    url: str
    headers: Optional[Dict[str, str]] = None
    body: Optional[Any] = None
    metadata: Optional[Dict[str, Any]] = None


class FundingProofArtifact(BaseModel):
    """Attestation evidence attached to one funding attempt."""

    status: FundingProofStatus
    generated_at: datetime
    request_url: str
    raw_proof: Optional[str] = Field(None, description="Raw evidence payload (CLI stdout on success)")
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    reason: Optional[str] = Field(None, description="Why the proof was skipped or failed")
    headers: Optional[Dict[str, str]] = None
    metadata: Optional[Dict[str, Any]] = None


class FundingExecutionResult(BaseModel):
    """Ledger gateway response. executed=False without an error means dry run."""

    executed: bool
    transaction_id: Optional[str] = None
    status: Optional[str] = None
    message: str
    metadata: Optional[Dict[str, Any]] = None


class FundingOutcome(FundingDecision):
    """Decision plus whatever the orchestrator did about it. Never persisted here."""

    executed: bool
    transaction_id: Optional[str] = None
    status: Optional[str] = None
    message: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    proof_artifact: Optional[FundingProofArtifact] = None

    @property
    def proof_status(self) -> FundingProofStatus:
        return self.metadata.get("proof_status", "skipped")
