"""CLI entry point for reel-planner."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Any

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
_OWNED = "_reel_planner_owned"


def setup_logging(log_dir: str = "output", verbose: bool = False) -> str:
    """Send the ``reel_planner`` logger to ``{log_dir}/reel_planner.log``
    (everything) and to stderr (INFO, or DEBUG with *verbose*).

    Handlers installed by an earlier call are replaced, so repeated calls
    never duplicate output. Returns the log file path.
    """
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, "reel_planner.log")
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    package_logger = logging.getLogger("reel_planner")
    for stale in [h for h in package_logger.handlers if getattr(h, _OWNED, False)]:
        package_logger.removeHandler(stale)
        stale.close()

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else logging.INFO)

    for handler in (file_handler, console):
        handler.setFormatter(formatter)
        setattr(handler, _OWNED, True)
        package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG)

    package_logger.debug(
        "Logging to %s, console at %s",
        log_path,
        logging.getLevelName(console.level),
    )
    return log_path


def _load_analysis_results(path: str) -> list[Any]:
    """Read analysis results from a JSON file.

    Accepts a bare array or an object with an ``analysisResults`` array.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("analysisResults")
    if not isinstance(data, list) or not data:
        raise ValueError(f"{path}: expected a non-empty analysisResults array")
    return data


def _run_plan(path: str, prompt_text: str) -> int:
    from reel_planner.client import ConfigurationError, get_client
    from reel_planner.tasks.sequence import plan_sequence

    try:
        analysis_results = _load_analysis_results(path)
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    try:
        client = get_client()
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    plan = asyncio.run(plan_sequence(analysis_results, prompt_text, client=client))
    print(json.dumps(plan.to_response(), indent=2, ensure_ascii=False))
    return 0


def main(argv: list[str] | None = None) -> None:
    load_dotenv()

    parser = argparse.ArgumentParser(
        prog="reel-planner",
        description="Analyze photos and plan cinematic sequences using Grok",
    )
    parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    parser.add_argument(
        "--port",
        type=int,
        default=8420,
        help="Port for the API server (default: 8420)",
    )
    parser.add_argument("--log-dir", default="output", help="Log directory")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Show DEBUG output on the console"
    )
    parser.add_argument(
        "--plan",
        metavar="FILE",
        help="Plan a sequence from a JSON file of analysis results and exit",
    )
    parser.add_argument(
        "--prompt",
        default="",
        help="Creative brief passed to the planner (with --plan)",
    )
    args = parser.parse_args(argv)

    setup_logging(args.log_dir, verbose=args.verbose)

    if args.plan:
        sys.exit(_run_plan(args.plan, args.prompt.strip()))

    import uvicorn

    from reel_planner.web import app

    logger.info("Starting API server on %s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
