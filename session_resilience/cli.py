"""CLI entry point for the session resilience layer."""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import List, Optional

from .api.runtime import SessionRuntime
from .config.constants import DEFAULT_STORAGE_PATH, STORAGE_PATH_ENV_VAR
from .config.settings import ClientConfig
from .errors import ConfigurationError
from .models.events import RecoveryEvent
from .observability.logging import describe_error
from .storage.file import JsonFileStorageBackend


def build_runtime(endpoint: Optional[str] = None, storage_path: Optional[str] = None) -> SessionRuntime:
    """Build a runtime backed by the JSON file store."""
    config = ClientConfig.from_env() if endpoint is None else ClientConfig(endpoint=endpoint)
    path = storage_path or os.getenv(STORAGE_PATH_ENV_VAR) or DEFAULT_STORAGE_PATH
    return SessionRuntime(config=config, storage=JsonFileStorageBackend(path))


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


async def show_diagnostics(runtime: SessionRuntime) -> int:
    _print_json(runtime.diagnostics())
    return 0


async def validate_session(runtime: SessionRuntime) -> int:
    """Validate the stored session, recovering on token errors."""
    try:
        state = await runtime.validate_session()
    except Exception as e:
        if runtime.is_token_error(e):
            await runtime.recover(e, "cli-validate")
            _print_json({"valid": False, "recovered": True, "error": describe_error(e)})
        else:
            _print_json({
                "valid": False,
                "recovered": False,
                "kind": runtime.classify(e).kind.value,
                "error": describe_error(e)
            })
        return 1

    _print_json({"valid": state.present, **state.model_dump()})
    return 0 if state.present else 1


async def clear_tokens(runtime: SessionRuntime) -> int:
    cleared = runtime.store.clear_session_keys(runtime.config.storage_namespace)
    _print_json({"cleared": cleared})
    return 0 if cleared else 1


async def simulate_recovery(runtime: SessionRuntime) -> int:
    """Corrupt stored tokens and run recovery, printing the event."""
    events: List[RecoveryEvent] = []
    unsubscribe = runtime.subscribe(events.append)
    try:
        await runtime.simulate_token_error()
    finally:
        unsubscribe()
    _print_json([event.to_dict() for event in events])
    return 0 if len(events) == 1 else 1


COMMANDS = {
    'diagnostics': show_diagnostics,
    'validate': validate_session,
    'clear-tokens': clear_tokens,
    'simulate-recovery': simulate_recovery,
}


async def _run(command: str, runtime: SessionRuntime) -> int:
    async with runtime:
        return await COMMANDS[command](runtime)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI function."""
    parser = argparse.ArgumentParser(description="Session resilience tools")
    parser.add_argument('--endpoint', help='Backend URL (defaults to SESSION_BACKEND_URL)')
    parser.add_argument('--storage', help='Path of the JSON session store')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')
    subparsers.add_parser('diagnostics', help='Show client and storage diagnostics')
    subparsers.add_parser('validate', help='Validate the stored session')
    subparsers.add_parser('clear-tokens', help='Remove all stored session keys')
    subparsers.add_parser('simulate-recovery', help='Simulate a refresh token error')

    args = parser.parse_args(argv)

    if args.command not in COMMANDS:
        parser.print_help()
        return 2

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s"
    )

    try:
        runtime = build_runtime(args.endpoint, args.storage)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    return asyncio.run(_run(args.command, runtime))


if __name__ == "__main__":
    sys.exit(main())
