"""
AgentFund CLI — evaluate and fund agents from the shell.

Commands:
  agentfund evaluate <context.json>  — Print the funding decision (no config needed)
  agentfund fund <context.json>      — Evaluate, prove if configured, pay; print the outcome
  agentfund demo                     — Same as fund, for the built-in sample agent
  agentfund deploy                   — Deploy registry + treasury (+ stub verifier) contracts

<context.json> is {"profile": {...}, "snapshot": {...}}; use "-" to read stdin.
"""

import asyncio
import json
import logging
import os
import sys
from pathlib import Path

from pydantic import ValidationError

from agentfund.config import ConfigError, load_config, load_dotenv_file
from agentfund.evaluator import evaluate_funding
from agentfund.schema import AgentFundingContext, FundingOutcome
from agentfund.tools import fund_agent, sample_context


def _load_context(source: str) -> AgentFundingContext:
    raw = sys.stdin.read() if source == "-" else Path(source).read_text(encoding="utf-8")
    return AgentFundingContext.model_validate_json(raw)


def _context_arg() -> AgentFundingContext:
    if len(sys.argv) < 3:
        print(f"Usage: agentfund {sys.argv[1]} <context.json | ->")
        sys.exit(1)
    try:
        return _load_context(sys.argv[2])
    except FileNotFoundError:
        print(f"❌ Context file not found: {sys.argv[2]}")
        sys.exit(1)
    except ValidationError as e:
        print(f"❌ Invalid funding context:\n{e}")
        sys.exit(1)


def _print_outcome(outcome: FundingOutcome) -> None:
    if not outcome.should_fund:
        print(f"[FUNDING] No funding needed. {outcome.reason}")
    elif outcome.executed:
        print(f"[FUNDING] ✅ Funded {outcome.top_up_amount} HBAR. Tx: {outcome.transaction_id} ({outcome.status})")
    elif outcome.proof_artifact is not None and outcome.proof_artifact.status != "success":
        print(f"[FUNDING] Held back: {outcome.reason}")
    else:
        print(f"[FUNDING] Not executed: {outcome.message or outcome.reason}")
    print(f"[FUNDING] Re-check in {outcome.reevaluate_in_ms // 1000}s")
    print(json.dumps(outcome.model_dump(mode="json"), indent=2))


def evaluate_command():
    """Pure decision for a context file; never touches the ledger."""
    context = _context_arg()
    decision = evaluate_funding(context)
    print(json.dumps(decision.model_dump(mode="json"), indent=2))


def _run_funding(context: AgentFundingContext) -> None:
    try:
        config = load_config()
    except ConfigError as e:
        print(f"❌ Configuration error: {e}")
        sys.exit(1)
    mode = "DRY RUN" if config.dry_run_funding else "LIVE"
    print(f"[FUNDING] Agent {context.profile.agent_id} on {config.hedera_network} ({mode})")
    if config.vlayer.enabled:
        print(f"[FUNDING] Proofs: vlayer via {config.vlayer.cli_path} → {config.vlayer.notary_url}")
    try:
        outcome = asyncio.run(fund_agent(context, config))
    except ConfigError as e:
        print(f"❌ Configuration error: {e}")
        sys.exit(1)
    except Exception as e:
        print(f"❌ Funding failed: {type(e).__name__}: {e}")
        # no decision came back, so fall back to the configured poll interval
        print(f"[FUNDING] Retry in {config.funding_poll_interval_ms // 1000}s")
        sys.exit(1)
    _print_outcome(outcome)


def fund_command():
    """Evaluate + prove + pay for a context file."""
    _run_funding(_context_arg())


def demo_command():
    """Run the funding flow for the sample agent (respects HEDERA_AGENT_DRY_RUN, default on)."""
    _run_funding(sample_context())


def deploy_command():
    """Deploy the funding contracts using HEDERA_* and CONTRACT_ARTIFACTS_DIR from env/.env."""
    from agentfund.deploy import DeploymentError, deploy_contracts

    try:
        result = deploy_contracts(echo=lambda msg: print(f"[DEPLOY] {msg}" if msg.strip() else msg))
    except (DeploymentError, ConfigError) as e:
        print(f"❌ Deployment failed: {e}")
        sys.exit(1)
    except Exception as e:
        print(f"❌ Deployment failed: {type(e).__name__}: {e}")
        sys.exit(1)
    print(f"\n   Registry: {result.registry.label()}")
    print(f"   Treasury: {result.treasury.label()}")
    print(f"   Set AGENT_CONTRACT_ID={result.treasury.contract_id or result.treasury.evm_address} in .env")


def main():
    """CLI entry point."""
    load_dotenv_file()
    if os.getenv("AGENTFUND_DEBUG"):
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    if len(sys.argv) < 2:
        print("AgentFund CLI")
        print("\nCommands:")
        print("  agentfund evaluate <context.json>  — Print the funding decision")
        print("  agentfund fund <context.json>      — Evaluate, prove, pay; print the outcome")
        print("  agentfund demo                     — Fund the built-in sample agent")
        print("  agentfund deploy                   — Deploy the funding contracts")
        print("\nExamples:")
        print("  agentfund evaluate agent.json")
        print("  HEDERA_AGENT_DRY_RUN=false agentfund fund agent.json")
        sys.exit(1)

    command = sys.argv[1]

    if command == "evaluate":
        evaluate_command()
    elif command == "fund":
        fund_command()
    elif command == "demo":
        demo_command()
    elif command == "deploy":
        deploy_command()
    else:
        print(f"Unknown command: {command}")
        print("Use 'agentfund evaluate <context.json>', 'agentfund fund <context.json>', 'agentfund demo', 'agentfund deploy'")
        sys.exit(1)


if __name__ == "__main__":
    main()
