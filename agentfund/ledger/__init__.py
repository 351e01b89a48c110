"""
Ledger access: Hedera through its JSON-RPC relay (web3 + operator ECDSA key).
"""

from agentfund.ledger.client import LedgerClientHandle, load_operator_account, resolve_network
from agentfund.ledger.contract import (
    AgentContractService,
    FundingContractGateway,
    FundingExecutionError,
)
from agentfund.ledger.parameters import (
    ContractFunctionParameters,
    entity_id_to_evm_address,
    normalize_address,
)
from agentfund.ledger.units import TINYBARS_PER_HBAR, hbar_to_tinybars, tinybars_to_weibars

__all__ = [
    "LedgerClientHandle",
    "load_operator_account",
    "resolve_network",
    "AgentContractService",
    "FundingContractGateway",
    "FundingExecutionError",
    "ContractFunctionParameters",
    "entity_id_to_evm_address",
    "normalize_address",
    "TINYBARS_PER_HBAR",
    "hbar_to_tinybars",
    "tinybars_to_weibars",
]
