"""CLI entry point: python main.py call "Summarize this text..." """

import argparse
import asyncio
import json
import sys
from typing import Optional

import httpx

from src.ai_routing import (
    AICallOptions,
    FailoverOrchestrator,
    SqlAlchemyRoutingRepository,
    summarize_usage,
)
from src.db import dispose_engine, get_async_session_factory, init_db
from src.gateway_errors import AllModelsFailedError, GatewayError
from src.logging_config import LoggingConfig, configure_logging
from src.model_providers import ProviderRegistry
from src.secrets_vault import CredentialVault
from src.settings import get_settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="AI gateway - model routing and failover"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the gateway tables")

    encrypt = sub.add_parser("encrypt", help="Encrypt a provider API key")
    encrypt.add_argument("plaintext", help="Secret to encrypt")

    call = sub.add_parser("call", help="Route a prompt through the fallback chain")
    call.add_argument("prompt", help="Prompt text")
    call.add_argument("--temperature", type=float, default=0.7)
    call.add_argument("--max-tokens", type=int, default=1000)
    call.add_argument("--user-id", default=None)
    call.add_argument("--tool-id", default=None)

    stats = sub.add_parser("stats", help="Summarize recorded usage")
    stats.add_argument("--days", type=int, default=30)
    stats.add_argument("--model-id", default=None)

    return parser


async def _run_call(args, settings) -> dict:
    repository = SqlAlchemyRoutingRepository(get_async_session_factory())
    async with httpx.AsyncClient() as client:
        orchestrator = FailoverOrchestrator.from_settings(
            repository, settings, ProviderRegistry(http_client=client)
        )
        result = await orchestrator.call_ai(
            args.prompt,
            AICallOptions(
                temperature=args.temperature,
                max_tokens=args.max_tokens,
                user_id=args.user_id,
                tool_id=args.tool_id,
            ),
        )
    return result.to_dict()


async def _run_stats(args) -> dict:
    repository = SqlAlchemyRoutingRepository(get_async_session_factory())
    summary = await summarize_usage(repository, args.days, args.model_id)
    return summary.to_dict()


async def _dispatch(args, settings) -> Optional[dict]:
    try:
        if args.command == "init-db":
            await init_db()
            return None
        if args.command == "call":
            return await _run_call(args, settings)
        if args.command == "stats":
            return await _run_stats(args)
    finally:
        await dispose_engine()
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(LoggingConfig.from_settings(settings))

    try:
        if args.command == "encrypt":
            print(CredentialVault.from_settings(settings).encrypt(args.plaintext))
            return 0
        output = asyncio.run(_dispatch(args, settings))
    except AllModelsFailedError as exc:
        print(json.dumps({"error": exc.message, "attempts": exc.attempts}, indent=2),
              file=sys.stderr)
        return 2
    except GatewayError as exc:
        print(f"Error [{exc.error_code.value}]: {exc.message}", file=sys.stderr)
        return 1

    if output is None:
        print("Database initialized.")
    else:
        print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
