"""
Funding proofs via the vlayer CLI (web-proof-fetch against a TLS notary).

The CLI is a separate process: we pass the request as arguments, wait for it to
exit, and turn the exit status into a FundingProofArtifact. Expected negatives
(integration disabled, nonzero exit) come back as data with a reason; only a
failure to start the process raises.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from agentfund.config import ProofSettings
from agentfund.schema import FundingProofArtifact, FundingProofRequest

logger = logging.getLogger(__name__)

PROOF_SUBCOMMAND = "web-proof-fetch"
AUTHORIZATION_HEADER = "authorization"


class FundingProofProvider(Protocol):
    async def generate_funding_proof(self, request: FundingProofRequest) -> FundingProofArtifact:
        ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


def has_authorization_header(headers: Dict[str, str]) -> bool:
    return any(key.lower() == AUTHORIZATION_HEADER for key in headers)


def merge_headers_with_jwt(headers: Dict[str, str], jwt_token: Optional[str]) -> Dict[str, str]:
    """Add Authorization: Bearer <jwt> unless the caller already set one (any case)."""
    merged = dict(headers)
    if jwt_token and not has_authorization_header(merged):
        merged["Authorization"] = f"Bearer {jwt_token}"
    return merged


def redact_headers(headers: Dict[str, str]) -> Dict[str, str]:
    """Copy of headers safe to keep on the artifact (credentials masked)."""
    return {key: ("***" if key.lower() == AUTHORIZATION_HEADER else value) for key, value in headers.items()}


def build_cli_args(url: str, notary_url: str, headers: Dict[str, str], body: Any = None) -> List[str]:
    """Argument list for `vlayer web-proof-fetch` (binary name not included)."""
    args = [PROOF_SUBCOMMAND, "--url", url, "--notary", notary_url]
    for key, value in headers.items():
        args.extend(["--headers", f"{key}: {value}"])
    if body is not None:
        payload = body if isinstance(body, str) else json.dumps(body, indent=2, default=str)
        args.extend(["--data", payload])
    return args


class VlayerProofService:
    """Default FundingProofProvider backed by the vlayer CLI."""

    def __init__(self, settings: Optional[ProofSettings] = None):
        self.settings = settings or ProofSettings()

    async def generate_funding_proof(self, request: FundingProofRequest) -> FundingProofArtifact:
        if not self.settings.enabled:
            return FundingProofArtifact(
                status="skipped",
                generated_at=_now(),
                request_url=request.url,
                reason="vlayer integration is disabled",
                metadata=request.metadata,
            )

        headers = merge_headers_with_jwt(request.headers or {}, self.settings.jwt_token)
        args = build_cli_args(request.url, self.settings.notary_url, headers, request.body)
        logger.debug("Running %s %s for %s", self.settings.cli_path, PROOF_SUBCOMMAND, request.url)

        process = await asyncio.create_subprocess_exec(
            self.settings.cli_path,
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout_bytes, stderr_bytes = await process.communicate()
        exit_code = process.returncode if process.returncode is not None else -1
        stdout = stdout_bytes.decode("utf-8", errors="replace").strip()
        stderr = stderr_bytes.decode("utf-8", errors="replace").strip()

        if exit_code != 0:
            logger.info("vlayer cli exited with code %s for %s", exit_code, request.url)
            return FundingProofArtifact(
                status="failed",
                generated_at=_now(),
                request_url=request.url,
                reason=f"vlayer cli exited with code {exit_code}",
                stdout=stdout,
                stderr=stderr,
                headers=redact_headers(headers),
                metadata=request.metadata,
            )

        return FundingProofArtifact(
            status="success",
            generated_at=_now(),
            request_url=request.url,
            raw_proof=stdout,
            stdout=stdout,
            stderr=stderr,
            headers=redact_headers(headers),
            metadata=request.metadata,
        )
