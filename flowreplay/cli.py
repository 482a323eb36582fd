"""Command line interface.

Usage:
    flowreplay validate flow.json
    flowreplay run flow.json --backend webdriver --var user=alice --continue-on-error
    flowreplay send flow.json --endpoint https://backend.example.com/flows
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional, Sequence

import structlog
from pydantic import ValidationError

from .adapters.base import BackendConfig, create_context
from .config import ExecutionBackend, get_settings
from .errors import ReplayError
from .flows.models import Flow
from .flows.runner import FlowRunner, RunOptions
from .flows.transport import FlowUploader, FlowUploadError
from .flows.validation import validate_steps
from .locators.resolver import RacingLocatorResolver, ResolverConfig
from .utils.logging import configure_logging, log_operation

logger = structlog.get_logger(__name__)


def load_flow(path: str) -> Flow:
    return Flow.from_json(Path(path).read_text(encoding="utf-8"))


def parse_variables(pairs: Sequence[str]) -> dict[str, str]:
    """Parse repeated ``name=value`` arguments."""
    variables = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise ValueError(f"Expected name=value, got {pair!r}")
        variables[name.strip()] = value
    return variables


def cmd_validate(args: argparse.Namespace) -> int:
    flow = load_flow(args.flow)
    report = validate_steps(flow.steps)
    if not report:
        print(f"{flow.title}: {len(flow.steps)} steps, no problems")
        return 0

    for index, problems in report.items():
        for problem in problems:
            print(f"step {index} ({flow.steps[index].type}): {problem}")
    return 1


async def _run(args: argparse.Namespace) -> int:
    settings = get_settings()
    flow = load_flow(args.flow)

    overrides = {"variables": parse_variables(args.var)}
    if args.continue_on_error:
        overrides["stop_on_error"] = False
    if args.step_delay_ms is not None:
        overrides["step_delay_ms"] = args.step_delay_ms
    options = RunOptions.from_settings(settings, **overrides)

    backend_overrides = {"backend": ExecutionBackend(args.backend)}
    if args.headed:
        backend_overrides["headless"] = False
    config = BackendConfig.from_settings(settings, **backend_overrides)

    resolver = RacingLocatorResolver(ResolverConfig.from_settings(settings)) if args.racing else None
    runner = FlowRunner(resolver=resolver, settings=settings)

    with log_operation("flow_run", logger, flow_id=flow.id, backend=config.backend.value) as outcome:
        async with create_context(config.backend, config) as context:
            result = await runner.run(flow, context, options)
        outcome["passed"] = result.success

    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    return 0 if result.success else 1


def cmd_run(args: argparse.Namespace) -> int:
    return asyncio.run(_run(args))


def cmd_send(args: argparse.Namespace) -> int:
    flow = load_flow(args.flow)
    try:
        response = asyncio.run(FlowUploader(endpoint=args.endpoint).send(flow))
    except FlowUploadError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(json.dumps(response, ensure_ascii=False, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="flowreplay", description="Replay recorded browser flows")
    parser.add_argument("--log-level", help="Override FLOWREPLAY_LOG_LEVEL")
    parser.add_argument("--log-json", action="store_true", help="Render logs as JSON")
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Check every step for missing fields")
    validate.add_argument("flow", help="Flow document (JSON)")
    validate.set_defaults(handler=cmd_validate)

    run = subparsers.add_parser("run", help="Replay a flow in a browser")
    run.add_argument("flow", help="Flow document (JSON)")
    run.add_argument(
        "--backend",
        choices=[ExecutionBackend.PLAYWRIGHT.value, ExecutionBackend.WEBDRIVER.value],
        default=ExecutionBackend.PLAYWRIGHT.value,
        help="Browser driver",
    )
    run.add_argument("--var", action="append", default=[], metavar="NAME=VALUE",
                     help="Template variable for {{name}} placeholders (repeatable)")
    run.add_argument("--continue-on-error", action="store_true", help="Keep going after a failed step")
    run.add_argument("--step-delay-ms", type=int, help="Delay between steps")
    run.add_argument("--racing", action="store_true", help="Use the first-visible resolver instead of scoring")
    run.add_argument("--headed", action="store_true", help="Show the browser window")
    run.set_defaults(handler=cmd_run)

    send = subparsers.add_parser("send", help="Post a flow document to the backend")
    send.add_argument("flow", help="Flow document (JSON)")
    send.add_argument("--endpoint", help="Override FLOWREPLAY_BACKEND_ENDPOINT")
    send.set_defaults(handler=cmd_send)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(level=args.log_level or settings.log_level, json_format=args.log_json or settings.log_json)

    try:
        return args.handler(args)
    except (OSError, ValidationError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ReplayError as e:
        logger.error("Run aborted", code=e.code, error=e.message)
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
