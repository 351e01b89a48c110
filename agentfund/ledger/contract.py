"""
Agent contract gateway: executes the funding call (default payForPlan) on the
agent contract through the JSON-RPC relay.

Operator signs and broadcasts; the call carries the top-up as payable value.
With dry_run the call is skipped entirely and reported as executed=False.
"""

import logging
from typing import Any, Dict, Optional, Protocol

from web3 import Web3

from agentfund.config import FundingConfig
from agentfund.ledger.client import LedgerClientHandle
from agentfund.ledger.parameters import ContractFunctionParameters, normalize_address
from agentfund.ledger.units import tinybars_to_weibars
from agentfund.schema import FundingExecutionResult

logger = logging.getLogger(__name__)

DEFAULT_FUNCTION_NAME = "payForPlan"
DEFAULT_GAS_LIMIT = 2_000_000
RECEIPT_TIMEOUT_SECONDS = 120


class FundingExecutionError(RuntimeError):
    """The funding transaction was mined but reverted."""

    def __init__(self, message: str, transaction_id: Optional[str] = None):
        super().__init__(message)
        self.transaction_id = transaction_id


class FundingContractGateway(Protocol):
    async def execute_funding_call(
        self,
        function_name: str,
        parameters: ContractFunctionParameters,
        payable_amount: Optional[int] = None,
        memo: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        gas: Optional[int] = None,
    ) -> FundingExecutionResult:
        ...


class AgentContractService:
    """
    Default FundingContractGateway.

    handle: shared LedgerClientHandle (not touched in dry-run mode).
    contract_id: "0.0.N" or 0x address of the agent contract.
    payable_amount on calls is in tinybars.
    """

    def __init__(
        self,
        handle: LedgerClientHandle,
        contract_id: str,
        gas_limit: int = DEFAULT_GAS_LIMIT,
        dry_run: bool = True,
    ):
        self._handle = handle
        self.contract_id = contract_id
        self.contract_address = normalize_address(contract_id)
        self.gas_limit = gas_limit
        self.dry_run = dry_run

    @classmethod
    def from_config(cls, config: FundingConfig, handle: LedgerClientHandle) -> "AgentContractService":
        return cls(
            handle,
            config.agent_contract_id,
            gas_limit=config.contract_gas_limit,
            dry_run=config.dry_run_funding,
        )

    async def execute_funding_call(
        self,
        function_name: str = DEFAULT_FUNCTION_NAME,
        parameters: Optional[ContractFunctionParameters] = None,
        payable_amount: Optional[int] = None,
        memo: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        gas: Optional[int] = None,
    ) -> FundingExecutionResult:
        function_name = function_name or DEFAULT_FUNCTION_NAME
        parameters = parameters if parameters is not None else ContractFunctionParameters()
        gas_limit = gas or self.gas_limit
        result_metadata = dict(metadata or {})
        if memo:
            # The relay has no transaction memo; keep it with the result instead.
            result_metadata["memo"] = memo

        if self.dry_run:
            logger.info("DRY_RUN: skipping %s on %s (%s)", function_name, self.contract_id, parameters)
            return FundingExecutionResult(
                executed=False,
                message=f"DRY_RUN enabled: skipping contract call {function_name}",
                metadata=result_metadata,
            )

        w3 = self._handle.web3
        account = self._handle.account
        data = parameters.calldata(function_name)

        async with self._handle.send_lock():
            chain_id = await self._handle.chain_id()
            nonce = await w3.eth.get_transaction_count(account.address, "pending")
            gas_price = await w3.eth.gas_price
            tx = {
                "to": self.contract_address,
                "data": data,
                "value": tinybars_to_weibars(payable_amount or 0),
                "gas": gas_limit,
                "gasPrice": gas_price,
                "nonce": nonce,
                "chainId": chain_id,
            }
            signed = account.sign_transaction(tx)
            raw_tx = getattr(signed, "raw_transaction", None) or getattr(signed, "rawTransaction", None)
            if not raw_tx:
                raise RuntimeError("Signed transaction missing raw_transaction (check web3/eth-account version)")
            tx_hash = await w3.eth.send_raw_transaction(raw_tx)

        transaction_id = Web3.to_hex(tx_hash)
        logger.info("Submitted %s to %s: %s", function_name, self.contract_id, transaction_id)
        receipt = await w3.eth.wait_for_transaction_receipt(tx_hash, timeout=RECEIPT_TIMEOUT_SECONDS)
        if receipt["status"] != 1:
            raise FundingExecutionError(
                f"Contract {function_name} reverted (tx {transaction_id})",
                transaction_id=transaction_id,
            )

        result_metadata.setdefault("gas_used", receipt.get("gasUsed"))
        return FundingExecutionResult(
            executed=True,
            transaction_id=transaction_id,
            status="SUCCESS",
            message=f"Contract {function_name} executed with status SUCCESS",
            metadata=result_metadata,
        )
