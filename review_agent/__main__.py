# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Main entrypoint when running the review agent with `python -m review_agent`.
"""

import sys
import asyncio
import logging
import argparse

from pathlib import Path

from .agent import build_agent
from .src.types.agent_types import AnalysisStatus

logging.captureWarnings(True)
logger = logging.getLogger(__name__)

EXIT_CODES = {
    AnalysisStatus.SUCCESS: 0,
    AnalysisStatus.ERROR: 1,
    AnalysisStatus.EXHAUSTED: 2,
    AnalysisStatus.CANCELLED: 130,
}


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return number


def setup_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="review_agent")
    subparsers = parser.add_subparsers(dest="command", required=True)

    review_parser = subparsers.add_parser("review", help="Review a unified diff")
    review_parser.add_argument(
        "--diff-file",
        type=str,
        default=None,
        help="Path to a unified diff; the diff is read from stdin when omitted",
    )
    review_parser.add_argument(
        "--repo",
        type=str,
        default=".",
        help="Root of the repository the diff applies to",
    )
    review_parser.add_argument(
        "--focus", type=str, default=None, help="Optional areas the review should concentrate on"
    )
    review_parser.add_argument(
        "--max-iterations",
        type=positive_int,
        default=None,
        help="Override the conversation loop ceiling",
    )

    return parser


def read_diff(diff_file: str | None) -> str:
    if diff_file is None:
        return sys.stdin.read()
    return Path(diff_file).read_text(encoding="utf-8", errors="replace")


async def run_review(diff_file: str | None, repo: str, focus: str | None, max_iterations: int | None) -> int:
    repo_root = Path(repo)
    if not repo_root.is_dir():
        raise ValueError(f"Repository directory ({repo_root}) does not exist")

    diff_text = read_diff(diff_file)
    if not diff_text.strip():
        logger.error("The diff is empty, nothing to review")
        return 1

    agent = build_agent(repo_root, max_iterations=max_iterations)
    result = await agent.review(diff_text, focus=focus)

    print(result.analysis)
    logger.info(
        f"Review finished with status {result.status.value}: "
        f"{result.tool_calls.total_calls} tool calls over {result.iterations} iterations"
    )
    return EXIT_CODES[result.status]


async def main() -> int:
    parser = setup_parser()
    args = parser.parse_args()

    if args.command == "review":
        return await run_review(args.diff_file, args.repo, args.focus, args.max_iterations)
    return 1


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
