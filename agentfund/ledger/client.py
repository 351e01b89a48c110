"""
Ledger client handle: one AsyncWeb3 connection to a Hedera JSON-RPC relay plus
the operator account that signs funding transactions.

Built lazily on first use and memoized. Create one handle per process and pass
it to every gateway that needs it.
"""

import asyncio
import json
import threading
from typing import Optional, Tuple

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3

from agentfund.config import ConfigError, FundingConfig

# Hashio JSON-RPC relays; chain ids per HIP-26
NETWORKS = {
    "mainnet": ("https://mainnet.hashio.io/api", 295),
    "testnet": ("https://testnet.hashio.io/api", 296),
    "previewnet": ("https://previewnet.hashio.io/api", 297),
}

# DER header of a secp256k1 private key as exported by the Hedera portal
ECDSA_DER_PREFIX = "3030020100300706052b8104000a04220420"
ED25519_DER_PREFIX = "302e020100300506032b657004220420"


def resolve_network(value: str) -> Tuple[str, Optional[int]]:
    """
    Map HEDERA_NETWORK to (rpc_url, chain_id).

    Named networks use the public relay. A raw http(s) URL is used as-is with
    the chain id read from the node. A JSON object may give both:
    {"rpc_url": "...", "chain_id": 298}.
    """
    raw = value.strip()
    named = NETWORKS.get(raw.lower())
    if named:
        return named
    if raw.startswith("http://") or raw.startswith("https://"):
        return raw, None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        raise ConfigError(f"Unsupported Hedera network value {value}.")
    if not isinstance(parsed, dict) or not parsed.get("rpc_url"):
        raise ConfigError(f"Unsupported Hedera network value {value}.")
    chain_id = parsed.get("chain_id")
    return str(parsed["rpc_url"]), int(chain_id) if chain_id is not None else None


def load_operator_account(operator_key: str) -> LocalAccount:
    """
    Operator signer from a hex ECDSA key (raw or DER). ED25519 operator keys
    cannot sign EVM transactions.
    """
    key = operator_key.strip().lower()
    if key.startswith("0x"):
        key = key[2:]
    if key.startswith(ED25519_DER_PREFIX):
        raise ConfigError("HEDERA_OPERATOR_KEY is an ED25519 key; the JSON-RPC relay needs an ECDSA (secp256k1) key.")
    if key.startswith(ECDSA_DER_PREFIX):
        key = key[len(ECDSA_DER_PREFIX):]
    if len(key) != 64:
        raise ConfigError("HEDERA_OPERATOR_KEY must be a 32-byte hex ECDSA private key.")
    try:
        return Account.from_key("0x" + key)
    except ValueError as e:
        raise ConfigError(f"HEDERA_OPERATOR_KEY is not a valid private key: {e}")


class LedgerClientHandle:
    """
    Shared, thread-safe handle to the ledger.

    network: "mainnet" | "testnet" | "previewnet", an RPC URL, or a JSON object.
    """

    def __init__(self, network: str, operator_id: str, operator_key: str):
        self._network = network
        self.operator_id = operator_id
        self._operator_key = operator_key
        self._lock = threading.Lock()
        self._web3: Optional[AsyncWeb3] = None
        self._account: Optional[LocalAccount] = None
        self._chain_id: Optional[int] = None
        self._rpc_url: Optional[str] = None
        self._send_lock: Optional[asyncio.Lock] = None
        self._send_lock_loop: Optional[asyncio.AbstractEventLoop] = None

    @classmethod
    def from_config(cls, config: FundingConfig) -> "LedgerClientHandle":
        return cls(config.hedera_network, config.operator_id, config.operator_key)

    def _build(self) -> None:
        with self._lock:
            if self._web3 is not None:
                return
            rpc_url, chain_id = resolve_network(self._network)
            account = load_operator_account(self._operator_key)
            self._rpc_url = rpc_url
            self._chain_id = chain_id
            self._account = account
            self._web3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))

    @property
    def web3(self) -> AsyncWeb3:
        if self._web3 is None:
            self._build()
        return self._web3

    @property
    def account(self) -> LocalAccount:
        if self._web3 is None:
            self._build()
        return self._account

    @property
    def rpc_url(self) -> str:
        if self._web3 is None:
            self._build()
        return self._rpc_url

    def send_lock(self) -> asyncio.Lock:
        """
        Lock held from nonce lookup to submission. Every gateway signing with
        this operator shares it; one lock per event loop, created on first use.
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            if self._send_lock is None or self._send_lock_loop is not loop:
                self._send_lock = asyncio.Lock()
                self._send_lock_loop = loop
            return self._send_lock

    async def chain_id(self) -> int:
        """Configured chain id, or the node's, fetched once."""
        w3 = self.web3
        if self._chain_id is None:
            chain_id = await w3.eth.chain_id
            with self._lock:
                self._chain_id = chain_id
        return self._chain_id
