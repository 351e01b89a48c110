"""
Environment configuration for the funding service.

Values come from the process environment; a .env file in the working directory
is loaded first without overriding variables that are already set. Problems are
raised as ConfigError at startup, never during a funding call.
"""

import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

DEFAULT_GAS_LIMIT = 2_000_000
DEFAULT_REEVALUATE_INTERVAL_MS = 5 * 60 * 1000
DEFAULT_VLAYER_NOTARY = "https://test-notary.vlayer.xyz/"
DEFAULT_VLAYER_CLI = "vlayer"

_TRUTHY = ("true", "1", "yes", "on")


class ConfigError(ValueError):
    """Configuration is missing or malformed."""


class ProofSettings(BaseModel):
    """vlayer web-proof integration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    cli_path: str = DEFAULT_VLAYER_CLI
    notary_url: str = DEFAULT_VLAYER_NOTARY
    jwt_token: Optional[str] = None
    proof_url: Optional[str] = None


class FundingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    hedera_network: str
    operator_id: str
    operator_key: str
    agent_contract_id: str
    contract_gas_limit: int = DEFAULT_GAS_LIMIT
    funding_poll_interval_ms: int = DEFAULT_REEVALUATE_INTERVAL_MS
    dry_run_funding: bool = True
    require_proof_success: bool = True
    vlayer: ProofSettings = ProofSettings()


def load_dotenv_file(path: Optional[Path] = None) -> None:
    """Load .env from cwd (or path) so commands work without manual exports."""
    load_dotenv(path or Path.cwd() / ".env", override=False)


def parse_boolean(value: Optional[str], fallback: bool) -> bool:
    if value is None:
        return fallback
    return value.strip().lower() in _TRUTHY


def _require(environ: Mapping[str, str], key: str) -> str:
    value = (environ.get(key) or "").strip()
    if not value:
        raise ConfigError(f"Missing required environment variable {key}")
    return value


def _optional_int(environ: Mapping[str, str], key: str, fallback: int) -> int:
    raw = (environ.get(key) or "").strip()
    if not raw:
        return fallback
    try:
        return int(float(raw))
    except (ValueError, OverflowError):
        raise ConfigError(f"Environment variable {key} must be a number, got {raw!r}")


def _optional_str(environ: Mapping[str, str], key: str) -> Optional[str]:
    value = (environ.get(key) or "").strip()
    return value or None


def load_proof_settings(environ: Optional[Mapping[str, str]] = None) -> ProofSettings:
    """
    Read VLAYER_* variables.

    VLAYER_ENABLED=true requires VLAYER_JWT_TOKEN; the notary rejects
    unauthenticated requests, so this fails here rather than on every proof.
    """
    environ = os.environ if environ is None else environ
    enabled = parse_boolean(environ.get("VLAYER_ENABLED"), False)
    jwt_token = _optional_str(environ, "VLAYER_JWT_TOKEN")
    if enabled and not jwt_token:
        raise ConfigError("VLAYER_JWT_TOKEN is required when VLAYER_ENABLED is true.")
    return ProofSettings(
        enabled=enabled,
        cli_path=_optional_str(environ, "VLAYER_CLI_PATH") or DEFAULT_VLAYER_CLI,
        notary_url=_optional_str(environ, "VLAYER_NOTARY_URL") or DEFAULT_VLAYER_NOTARY,
        jwt_token=jwt_token,
        proof_url=_optional_str(environ, "VLAYER_PROOF_URL"),
    )


def load_config(environ: Optional[Mapping[str, str]] = None) -> FundingConfig:
    """
    Build FundingConfig from the environment.

    When environ is None the .env file is loaded into os.environ first. Pass a
    mapping to read from it alone (tests, embedding).
    """
    if environ is None:
        load_dotenv_file()
        environ = os.environ
    return FundingConfig(
        hedera_network=_require(environ, "HEDERA_NETWORK"),
        operator_id=_require(environ, "HEDERA_OPERATOR_ID"),
        operator_key=_require(environ, "HEDERA_OPERATOR_KEY"),
        agent_contract_id=_require(environ, "AGENT_CONTRACT_ID"),
        contract_gas_limit=_optional_int(environ, "HEDERA_CONTRACT_GAS_LIMIT", DEFAULT_GAS_LIMIT),
        funding_poll_interval_ms=_optional_int(
            environ, "FUNDING_POLL_INTERVAL_MS", DEFAULT_REEVALUATE_INTERVAL_MS
        ),
        dry_run_funding=parse_boolean(environ.get("HEDERA_AGENT_DRY_RUN"), True),
        require_proof_success=parse_boolean(environ.get("FUNDING_REQUIRE_PROOF_SUCCESS"), True),
        vlayer=load_proof_settings(environ),
    )
