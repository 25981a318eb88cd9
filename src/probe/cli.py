"""Command line access to the probe client."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from .client import HttpClientAdapter
from .config import ServiceName, load_settings
from .cross_service import CrossServiceRunner
from .endpoints import EndpointTester, list_endpoints
from .health import HealthAggregator


def _print(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="probe", description="Probe services behind the gateway")
    parser.add_argument("--config", type=Path, help="Path to configuration JSON")
    parser.add_argument("--base-url", help="Gateway base URL (overrides config)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("health", help="Probe every service once")

    p_eps = sub.add_parser("endpoints", help="List testable endpoints of a service")
    p_eps.add_argument("service")

    p_test = sub.add_parser("test", help="Invoke one endpoint by display name")
    p_test.add_argument("service", choices=[s.value for s in ServiceName])
    p_test.add_argument("name", help='Endpoint display name, e.g. "Health Check"')

    p_cross = sub.add_parser("cross", help="Run a cross-service test")
    p_cross.add_argument("mode", help="a-to-b, b-to-a or both")

    p_serve = sub.add_parser("serve", help="Run the dashboard frontend")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=3000)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = load_settings(args.config)
    if args.base_url:
        settings = settings.model_copy(update={"base_url": args.base_url})

    if args.command == "serve":
        import uvicorn

        from frontend import create_app

        uvicorn.run(create_app(settings), host=args.host, port=args.port)
        return 0

    if args.command == "endpoints":
        _print([{"name": ep.display_name, "path": ep.path, "method": ep.method.value} for ep in list_endpoints(args.service)])
        return 0

    adapter = HttpClientAdapter(timeout=settings.timeout)

    if args.command == "health":
        aggregator = HealthAggregator(adapter, settings)
        asyncio.run(aggregator.check_all())
        _print(aggregator.as_dict())
        return 0

    if args.command == "test":
        tester = EndpointTester(ServiceName(args.service), adapter, settings)
        try:
            outcome = asyncio.run(tester.invoke_by_name(args.name))
        except KeyError:
            print(f"unknown endpoint: {args.name}", file=sys.stderr)
            return 2
        _print(outcome.as_dict() if outcome else None)
        return 0

    runner = CrossServiceRunner(adapter, settings)
    outcome = asyncio.run(runner.execute(args.mode))
    _print(outcome.as_dict() if outcome else None)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
