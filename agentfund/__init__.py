"""
AgentFund — keep managed Hedera agents funded.

Evaluates an agent's balance snapshot, decides whether and how much to top up,
optionally notarizes the trigger with a vlayer web proof, and pays the agent
contract from the operator account.

No state between calls: each funding attempt returns an outcome with
reevaluate_in_ms; scheduling, retries and per-agent locking belong to the caller.
"""

__version__ = "0.1.0"

from agentfund.schema import (
    AgentProfile,
    AgentFundingSnapshot,
    AgentFundingContext,
    FundingDecision,
    FundingProofStatus,
    FundingProofRequest,
    FundingProofArtifact,
    FundingExecutionResult,
    FundingOutcome,
)
from agentfund.config import ConfigError, FundingConfig, ProofSettings, load_config
from agentfund.evaluator import evaluate_funding
from agentfund.orchestrator import FundingOrchestrator, default_parameter_builder
from agentfund.proof import FundingProofProvider, VlayerProofService
from agentfund.ledger import (
    AgentContractService,
    ContractFunctionParameters,
    FundingContractGateway,
    FundingExecutionError,
    LedgerClientHandle,
)
from agentfund.tools import build_orchestrator, default_proof_request_builder, fund_agent, sample_context

__all__ = [
    "__version__",
    "AgentProfile",
    "AgentFundingSnapshot",
    "AgentFundingContext",
    "FundingDecision",
    "FundingProofStatus",
    "FundingProofRequest",
    "FundingProofArtifact",
    "FundingExecutionResult",
    "FundingOutcome",
    "ConfigError",
    "FundingConfig",
    "ProofSettings",
    "load_config",
    "evaluate_funding",
    "FundingOrchestrator",
    "default_parameter_builder",
    "FundingProofProvider",
    "VlayerProofService",
    "AgentContractService",
    "ContractFunctionParameters",
    "FundingContractGateway",
    "FundingExecutionError",
    "LedgerClientHandle",
    "build_orchestrator",
    "default_proof_request_builder",
    "fund_agent",
    "sample_context",
]
