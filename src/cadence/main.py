"""
Cadence CLI

Command-line entry point for the task intelligence pipeline.

Usage:
    cadence capture "Call dentist today"     # Capture and schedule tasks
    cadence focus                            # Today's focus predictions
    cadence domino TASK_ID                   # What finishing a task unlocks
    cadence complete TASK_ID                 # Mark a task done
    cadence clusters                         # Recompute today's clusters
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import NoReturn

from cadence import __version__
from cadence.config import CadenceConfig, get_config
from cadence.pipeline.clusters import overloaded_clusters
from cadence.pipeline.domino import summary
from cadence.pipeline.engine import CadenceEngine, PersistenceError
from cadence.pipeline.types import Bucket
from cadence.utils.logging import get_logger, setup_logging

logger = get_logger("cadence.cli")


async def run_capture(engine: CadenceEngine, args: argparse.Namespace) -> int:
    text = " ".join(args.text)
    await engine.start()
    try:
        result = await engine.capture(args.user, text, declare_focus=args.focus)
    except PersistenceError as e:
        print(f"Could not save your capture. Your words were kept:\n{e.raw_text}", file=sys.stderr)
        return 1
    finally:
        await engine.stop()

    titles = {c.id: c.cleaned for c in result.candidates}
    for bucket in Bucket:
        ids = result.routing.bucket_list(bucket)
        if not ids:
            continue
        print(f"{bucket.value}:")
        for task_id in ids:
            score = next(s for s in result.scores if s.task_id == task_id)
            print(f"  [{score.priority.value} {score.effort.value}] {titles[task_id]}  ({task_id})")

    for suggestion in result.routing.related_suggestions:
        print(f"related ({suggestion.suggested_bucket.value}): {suggestion.task_title}")
    for question in result.clarifying_questions:
        print(f"? {question.question}")
    return 0


def run_focus(engine: CadenceEngine, args: argparse.Namespace) -> int:
    forecast = engine.predict_focus(args.user)
    if not forecast.predictions:
        print("No focus predictions for today.")
        for reason in forecast.reasoning:
            print(f"  {reason}")
        return 0

    for prediction in forecast.predictions:
        print(f"{prediction.score:5.1f}  {prediction.task_title}  ({prediction.task_id})")
        for reason in prediction.reasoning:
            print(f"       - {reason}")

    if args.choose:
        task = engine.choose_focus(args.user, forecast.predictions[0].task_id)
        if task is not None:
            print(f"Focus set: {task.title}")
    return 0


def run_domino(engine: CadenceEngine, args: argparse.Namespace) -> int:
    effect = engine.analyze_domino(args.user, args.task_id)
    line = summary(effect)
    if line:
        print(line)
    for unlocked in effect.unlocked_tasks:
        print(f"  {unlocked.relationship.value:<12} {unlocked.title}")
    for reason in effect.reasoning:
        print(f"- {reason}")
    return 0


def run_complete(engine: CadenceEngine, args: argparse.Namespace) -> int:
    task = engine.complete_task(args.user, args.task_id)
    if task is None:
        print(f"No task with id {args.task_id}", file=sys.stderr)
        return 1
    print(f"Done: {task.title}")
    return 0


def run_clusters(engine: CadenceEngine, args: argparse.Namespace) -> int:
    clusters = engine.refresh_clusters(args.user)
    overloaded = set(overloaded_clusters(clusters))
    for name, ids in clusters.items():
        flag = "  (overloaded)" if name in overloaded else ""
        print(f"{name}: {len(ids)} tasks{flag}")
    if not clusters:
        print("No clusters today.")
    return 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--user", default="local", help="User id (default: local)")
    common.add_argument("--debug", action="store_true", help="Enable debug logging")
    common.add_argument(
        "--console",
        action="store_true",
        help="Use pretty console logging instead of JSON",
    )

    parser = argparse.ArgumentParser(
        prog="cadence",
        description="Cadence - task intelligence from freeform captures",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    capture = commands.add_parser("capture", parents=[common], help="Capture freeform text")
    capture.add_argument("text", nargs="+", help="What's on your mind")
    capture.add_argument("--focus", action="store_true", help="Make this today's primary focus")

    focus = commands.add_parser("focus", parents=[common], help="Predict today's primary focus")
    focus.add_argument("--choose", action="store_true", help="Adopt the top prediction")

    domino = commands.add_parser("domino", parents=[common], help="What a task unlocks")
    domino.add_argument("task_id")

    complete = commands.add_parser("complete", parents=[common], help="Mark a task done")
    complete.add_argument("task_id")

    commands.add_parser("clusters", parents=[common], help="Recompute today's clusters")

    return parser.parse_args(argv)


def run(args: argparse.Namespace, config: CadenceConfig) -> int:
    engine = CadenceEngine(config=config)
    if args.command == "capture":
        return asyncio.run(run_capture(engine, args))

    handlers = {
        "focus": run_focus,
        "domino": run_domino,
        "complete": run_complete,
        "clusters": run_clusters,
    }
    try:
        return handlers[args.command](engine, args)
    finally:
        engine.store.close()


def main() -> NoReturn:
    """Main entry point for the cadence command."""
    args = parse_args()

    # Load configuration
    config = get_config()

    # Override config from command line
    if args.debug:
        config.log.level = "DEBUG"
    if args.console:
        config.log.format = "console"

    # Set up logging
    setup_logging(
        level=config.log.level,
        format=config.log.format,
        log_file=config.log.file,
    )
    logger.debug("cadence_command", command=args.command, user=args.user, version=__version__)

    sys.exit(run(args, config))


if __name__ == "__main__":
    main()
