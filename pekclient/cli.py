#!/usr/bin/env python3
"""
pekclient CLI

Command-line interface for a progressive clustering server.

Usage:
    pekclient info                                # Server version and datasets
    pekclient datasets                            # List dataset names
    pekclient dataset <name> <key>                # Fetch a dataset attribute
    pekclient run <dataset> [--n-clusters 3]      # Run a task, print partial results
"""

import argparse
import asyncio
import json
import sys
from typing import Optional

from pekclient.config.settings_loader import ConfigManager, Settings
from pekclient.core.dataset import DATASET_KEYS
from pekclient.core.early_termination import DefaultEarlyTerminator
from pekclient.schemas.data_models import ALL_METRICS, InitStrategy, PartialResult
from pekclient.services.client import PekClient
from pekclient.utils.advanced_logging import configure_logging
from pekclient.utils.error_handling import PekError


METRIC_ARGUMENTS = (
    "labels_validation_metrics",
    "labels_comparison_metrics",
    "labels_progression_metrics",
    "partitions_validation_metrics",
    "partitions_comparison_metrics",
    "partitions_progression_metrics",
)


def print_json(data, indent: Optional[int] = 2):
    """Pretty print JSON."""
    print(json.dumps(data, indent=indent, default=str))


def print_info(client: PekClient):
    """Print server information."""
    print(f"✅ Connected to {client.server['url']}")
    print(f"   Server version: {client.server.get('version') or 'unknown'}")
    print(f"   Client id: {client.id}")
    print(f"   Datasets: {len(client.get_dataset_names())}")


def print_partial_result(result: PartialResult):
    """Print one partial result as a JSON line."""
    print(result.model_dump_json(by_alias=True))


def build_task_arguments(args: argparse.Namespace) -> dict:
    """Translate command line options into task arguments."""
    task_args = {
        "data": args.dataset,
        "n_clusters": args.n_clusters,
        "n_runs": args.n_runs,
        "init": args.init,
        "max_iter": args.max_iter,
        "tol": args.tol,
        "random_state": args.random_state,
        "freq": args.freq,
        "return_partitions": args.return_partitions,
    }
    if args.ets:
        task_args["ets"] = [DefaultEarlyTerminator.by_name(name) for name in args.ets]
    if args.metrics:
        selection = ALL_METRICS if args.metrics == [ALL_METRICS] else args.metrics
        for name in METRIC_ARGUMENTS:
            task_args[name] = selection
    return task_args


async def run_task(client: PekClient, args: argparse.Namespace) -> int:
    """Start a task and stream its partial results until it completes."""
    done = asyncio.Event()

    def on_result(result: PartialResult):
        print_partial_result(result)
        if result.info.completed:
            done.set()

    task = client.create_task()
    task.configure(**build_task_arguments(args)).on_partial_result(on_result)

    await task.start()
    print(f"🔄 Task {task.id} started", file=sys.stderr)

    try:
        await done.wait()
    except asyncio.CancelledError:
        await task.kill()
        print(f"🚫 Task {task.id} killed", file=sys.stderr)
        raise

    print(f"✅ Task {task.id} completed", file=sys.stderr)
    return 0


async def execute(args: argparse.Namespace, settings: Settings) -> int:
    """Connect and execute a command."""
    async with await PekClient.connect(args.url, settings=settings) as client:
        if args.command == "info":
            print_info(client)
            print_json(client.get_dataset_names())

        elif args.command == "datasets":
            for name in client.get_dataset_names():
                print(name)

        elif args.command == "dataset":
            if len(args.args) != 2:
                print(f"❌ Usage: dataset <name> <{'|'.join(DATASET_KEYS)}>", file=sys.stderr)
                return 1
            name, key = args.args
            print_json(await client.get_dataset(name).get(key), indent=None)

        elif args.command == "run":
            return await run_task(client, args)

    return 0


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Progressive clustering client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "command",
        help="Command to execute",
        choices=["info", "datasets", "dataset", "run"],
    )

    parser.add_argument("args", nargs="*", help="Command arguments")
    parser.add_argument("--url", default=None, help="Server URL (defaults to the configured one)")
    parser.add_argument("--config", default=None, help="Path to settings.yaml")
    parser.add_argument("--n-clusters", type=int, default=2, help="Number of clusters")
    parser.add_argument("--n-runs", type=int, default=4, help="Number of runs in the ensemble")
    parser.add_argument("--init", default=InitStrategy.KMEANS_PLUS_PLUS.value, choices=[s.value for s in InitStrategy], help="Centroid initialization")
    parser.add_argument("--max-iter", type=int, default=300, help="Maximum iterations per run")
    parser.add_argument("--tol", type=float, default=1e-4, help="Convergence tolerance")
    parser.add_argument("--random-state", type=int, default=None, help="Seed")
    parser.add_argument("--freq", type=float, default=None, help="Minimum seconds between partial results")
    parser.add_argument("--ets", nargs="+", help="Early terminators (fast-notify, slow-notify, fast-kill, slow-kill)")
    parser.add_argument("--metrics", nargs="+", help="Metric names for every selector, or ALL")
    parser.add_argument("--return-partitions", action="store_true", help="Include partitions in partial results")

    args = parser.parse_args()

    if args.command == "run":
        if len(args.args) != 1:
            print("❌ Dataset name required", file=sys.stderr)
            sys.exit(1)
        args.dataset = args.args[0]

    try:
        settings = ConfigManager.load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(1)

    configure_logging(settings.logging.level, settings.logging.format, settings.client.name)

    try:
        sys.exit(asyncio.run(execute(args, settings)))
    except PekError as e:
        print(f"❌ {e.message}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
