"""
Contract call parameters and Hedera id ↔ EVM address helpers.

ContractFunctionParameters collects (abi type, value) pairs in call order and
encodes them with eth_abi, the same way job receipts are encoded for EAS.
"""

from typing import Any, List, Tuple

from eth_abi import encode
from web3 import Web3

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def parse_entity_id(entity_id: str) -> Tuple[int, int, int]:
    """Parse "shard.realm.num" (e.g. "0.0.123456")."""
    parts = entity_id.strip().split(".")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid Hedera entity id: {entity_id!r} (expected shard.realm.num)")
    shard, realm, num = (int(p) for p in parts)
    return shard, realm, num


def entity_id_to_evm_address(entity_id: str) -> str:
    """Long-zero EVM address for an account or contract id: 4-byte shard, 8-byte realm, 8-byte num."""
    shard, realm, num = parse_entity_id(entity_id)
    raw = shard.to_bytes(4, "big") + realm.to_bytes(8, "big") + num.to_bytes(8, "big")
    return Web3.to_checksum_address("0x" + raw.hex())


def normalize_address(value: str) -> str:
    """Accept a 0x EVM address or a shard.realm.num id; return a checksum address."""
    trimmed = value.strip()
    if trimmed.startswith("0x"):
        return Web3.to_checksum_address(trimmed)
    return entity_id_to_evm_address(trimmed)


def function_selector(function_name: str, types: List[str]) -> bytes:
    signature = f"{function_name}({','.join(types)})"
    return bytes(Web3.keccak(text=signature)[:4])


class ContractFunctionParameters:
    """Ordered ABI arguments for one contract function call. Adders chain."""

    def __init__(self) -> None:
        self._types: List[str] = []
        self._values: List[Any] = []

    def _add(self, abi_type: str, value: Any) -> "ContractFunctionParameters":
        self._types.append(abi_type)
        self._values.append(value)
        return self

    def add_string(self, value: str) -> "ContractFunctionParameters":
        return self._add("string", value)

    def add_address(self, value: str) -> "ContractFunctionParameters":
        return self._add("address", normalize_address(value))

    def add_bool(self, value: bool) -> "ContractFunctionParameters":
        return self._add("bool", bool(value))

    def add_int64(self, value: int) -> "ContractFunctionParameters":
        value = int(value)
        if not INT64_MIN <= value <= INT64_MAX:
            raise ValueError(f"int64 out of range: {value}")
        return self._add("int64", value)

    def add_uint256(self, value: int) -> "ContractFunctionParameters":
        value = int(value)
        if value < 0:
            raise ValueError(f"uint256 must be non-negative: {value}")
        return self._add("uint256", value)

    @property
    def types(self) -> List[str]:
        return list(self._types)

    @property
    def values(self) -> List[Any]:
        return list(self._values)

    def encode_arguments(self) -> bytes:
        return encode(self._types, self._values)

    def calldata(self, function_name: str) -> str:
        """0x-prefixed selector + ABI-encoded arguments."""
        return Web3.to_hex(function_selector(function_name, self._types) + self.encode_arguments())

    def __len__(self) -> int:
        return len(self._types)

    def __repr__(self) -> str:
        args = ", ".join(f"{t}={v!r}" for t, v in zip(self._types, self._values))
        return f"ContractFunctionParameters({args})"
