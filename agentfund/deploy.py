"""
Deploy the agent funding contracts from Foundry build output.

Order: verifier (AGENT_VERIFIER_ADDRESS, or a development stub) →
AgentFundingRegistry(verifier) → AgentPaymentTreasury(registry, payment target).

Deployment goes through the JSON-RPC relay with the operator key. The relay only
reports EVM addresses, so each contract's Hedera id (0.0.N) is looked up on the
mirror node afterwards; a failed lookup leaves the id unknown.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

import requests
from web3 import Web3

from agentfund.config import load_dotenv_file
from agentfund.ledger.client import load_operator_account, resolve_network
from agentfund.ledger.parameters import normalize_address

DEFAULT_DEPLOY_GAS = 2_000_000
DEFAULT_ARTIFACTS_DIR = "out"
RECEIPT_TIMEOUT_SECONDS = 180

MIRROR_NODES = {
    "mainnet": "https://mainnet-public.mirrornode.hedera.com/api/v1",
    "testnet": "https://testnet.mirrornode.hedera.com/api/v1",
    "previewnet": "https://previewnet.mirrornode.hedera.com/api/v1",
}

STUB_VERIFIER = ("StubAgentDecisionVerifier.sol", "StubAgentDecisionVerifier")
REGISTRY = ("AgentFunding.sol", "AgentFundingRegistry")
TREASURY = ("AgentPaymentTreasury.sol", "AgentPaymentTreasury")


class DeploymentError(RuntimeError):
    """Deployment could not proceed (missing artifact, target, or reverted create)."""


@dataclass
class ContractArtifact:
    name: str
    abi: List[Dict[str, Any]]
    bytecode: str


@dataclass
class DeployedContract:
    name: str
    evm_address: str
    contract_id: Optional[str] = None
    tx_hash: Optional[str] = None

    def label(self) -> str:
        return f"{self.contract_id} ({self.evm_address})" if self.contract_id else self.evm_address


@dataclass
class DeploymentResult:
    verifier: DeployedContract
    registry: DeployedContract
    treasury: DeployedContract
    payment_target: str
    stub_verifier: bool = False


def resolve_artifacts_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    environ = os.environ if environ is None else environ
    custom = (environ.get("CONTRACT_ARTIFACTS_DIR") or "").strip()
    return Path(custom or DEFAULT_ARTIFACTS_DIR).resolve()


def load_artifact(artifacts_dir: Path, source_file: str, contract_name: str) -> ContractArtifact:
    """Read <dir>/<File>.sol/<Name>.json as written by `forge build`."""
    path = artifacts_dir / source_file / f"{contract_name}.json"
    try:
        artifact = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise DeploymentError(f"Artifact not found at {path}. Run `forge build` or set CONTRACT_ARTIFACTS_DIR.")
    bytecode = artifact.get("bytecode")
    if isinstance(bytecode, dict):
        bytecode = bytecode.get("object")
    hex_code = (bytecode or "").strip().removeprefix("0x")
    if not hex_code:
        raise DeploymentError(f"Artifact at {path} is missing bytecode.object")
    return ContractArtifact(name=contract_name, abi=artifact.get("abi") or [], bytecode="0x" + hex_code)


def resolve_payment_target(environ: Optional[Mapping[str, str]] = None) -> str:
    environ = os.environ if environ is None else environ
    for key in ("AGENT_PAYMENT_TARGET", "HEDERA_PAYMENT_TARGET", "HEDERA_ACCOUNT_ID", "HEDERA_OPERATOR_ID"):
        raw = (environ.get(key) or "").strip()
        if raw:
            return normalize_address(raw)
    raise DeploymentError(
        "Missing AGENT_PAYMENT_TARGET. Provide a Hedera account ID or EVM address for the payout recipient."
    )


def mirror_node_url(network: str, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    environ = os.environ if environ is None else environ
    custom = (environ.get("HEDERA_MIRROR_NODE_URL") or "").strip().rstrip("/")
    if custom:
        return custom
    return MIRROR_NODES.get(network.strip().lower())


def lookup_contract_id(evm_address: str, mirror_url: Optional[str], timeout: int = 15) -> Optional[str]:
    """Hedera contract id for an EVM address via the mirror node, or None."""
    if not mirror_url:
        return None
    try:
        r = requests.get(f"{mirror_url}/contracts/{evm_address}", timeout=timeout)
    except requests.RequestException:
        return None
    if r.status_code != 200:
        return None
    try:
        return r.json().get("contract_id")
    except ValueError:
        return None


class ContractDeployer:
    """
    Sends contract-create transactions with the operator key.

    echo: progress sink (the CLI passes print).
    """

    def __init__(
        self,
        w3: Web3,
        operator_key: str,
        gas_limit: int = DEFAULT_DEPLOY_GAS,
        chain_id: Optional[int] = None,
        mirror_url: Optional[str] = None,
        echo: Callable[[str], None] = lambda _msg: None,
    ):
        self.w3 = w3
        self.account = load_operator_account(operator_key)
        self.gas_limit = gas_limit
        self.chain_id = chain_id
        self.mirror_url = mirror_url
        self.echo = echo

    def deploy(self, artifact: ContractArtifact, *constructor_args: Any) -> DeployedContract:
        contract = self.w3.eth.contract(abi=artifact.abi, bytecode=artifact.bytecode)
        tx = contract.constructor(*constructor_args).build_transaction(
            {
                "from": self.account.address,
                "chainId": self.chain_id or self.w3.eth.chain_id,
                "gas": self.gas_limit,
                "gasPrice": self.w3.eth.gas_price,
                "nonce": self.w3.eth.get_transaction_count(self.account.address, "pending"),
            }
        )
        signed = self.account.sign_transaction(tx)
        raw_tx = getattr(signed, "raw_transaction", None) or getattr(signed, "rawTransaction", None)
        if not raw_tx:
            raise DeploymentError("Signed transaction missing raw_transaction (check web3/eth-account version)")
        tx_hash = self.w3.eth.send_raw_transaction(raw_tx)
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=RECEIPT_TIMEOUT_SECONDS)
        tx_hex = Web3.to_hex(tx_hash)
        if receipt["status"] != 1 or not receipt.get("contractAddress"):
            raise DeploymentError(f"{artifact.name} deployment failed (tx {tx_hex})")
        evm_address = Web3.to_checksum_address(receipt["contractAddress"])
        deployed = DeployedContract(
            name=artifact.name,
            evm_address=evm_address,
            contract_id=lookup_contract_id(evm_address, self.mirror_url),
            tx_hash=tx_hex,
        )
        self.echo(f" ✅ {artifact.name} deployed: {deployed.label()}")
        return deployed


def deploy_contracts(
    environ: Optional[Mapping[str, str]] = None,
    echo: Callable[[str], None] = lambda _msg: None,
    w3: Optional[Web3] = None,
) -> DeploymentResult:
    """
    Deploy verifier (or stub), registry and treasury. Reads HEDERA_NETWORK,
    HEDERA_OPERATOR_KEY (HEDERA_PRIVATE_KEY accepted), AGENT_VERIFIER_ADDRESS,
    AGENT_PAYMENT_TARGET, DEPLOY_GAS_LIMIT and CONTRACT_ARTIFACTS_DIR.
    """
    if environ is None:
        load_dotenv_file()
        environ = os.environ

    network = (environ.get("HEDERA_NETWORK") or "testnet").strip()
    operator_key = (environ.get("HEDERA_OPERATOR_KEY") or environ.get("HEDERA_PRIVATE_KEY") or "").strip()
    if not operator_key:
        raise DeploymentError("Missing required environment variable HEDERA_OPERATOR_KEY")
    gas_raw = (environ.get("DEPLOY_GAS_LIMIT") or "").strip()
    if gas_raw and not gas_raw.isdigit():
        raise DeploymentError(f"DEPLOY_GAS_LIMIT must be an integer, got {gas_raw!r}")
    gas_limit = int(gas_raw) if gas_raw else DEFAULT_DEPLOY_GAS

    rpc_url, chain_id = resolve_network(network)
    if w3 is None:
        w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": 30}))
    deployer = ContractDeployer(
        w3,
        operator_key,
        gas_limit=gas_limit,
        chain_id=chain_id,
        mirror_url=mirror_node_url(network, environ),
        echo=echo,
    )
    artifacts_dir = resolve_artifacts_dir(environ)
    payment_target = resolve_payment_target(environ)

    # Load everything first so a missing artifact fails before any gas is spent.
    registry_artifact = load_artifact(artifacts_dir, *REGISTRY)
    treasury_artifact = load_artifact(artifacts_dir, *TREASURY)

    verifier_raw = (environ.get("AGENT_VERIFIER_ADDRESS") or "").strip()
    stub = not verifier_raw
    if stub:
        stub_artifact = load_artifact(artifacts_dir, *STUB_VERIFIER)
        echo("\nNo AGENT_VERIFIER_ADDRESS provided – deploying StubAgentDecisionVerifier (development only).")
        verifier = deployer.deploy(stub_artifact)
    else:
        verifier = DeployedContract(
            name="verifier",
            evm_address=normalize_address(verifier_raw),
            contract_id=None if verifier_raw.startswith("0x") else verifier_raw,
        )
        echo(f"Using verifier address from environment: {verifier.label()}")

    echo("Deploying contracts with the following configuration:")
    echo(f" - Hedera network: {network}")
    echo(f" - Verifier (EVM address): {verifier.evm_address}")
    echo(f" - Payment target (EVM address): {payment_target}")
    echo(f" - Gas limit: {gas_limit}")

    echo("\n➡️  Deploying AgentFundingRegistry...")
    registry = deployer.deploy(registry_artifact, verifier.evm_address)
    if stub:
        echo("Reminder: replace the stub verifier with a production verifier contract when ready.")

    echo("\n➡️  Deploying AgentPaymentTreasury...")
    treasury = deployer.deploy(treasury_artifact, registry.evm_address, payment_target)

    echo("\nDeployment complete.")
    return DeploymentResult(
        verifier=verifier,
        registry=registry,
        treasury=treasury,
        payment_target=payment_target,
        stub_verifier=stub,
    )
