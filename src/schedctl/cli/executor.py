# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Container executor entry point.

The default scheduler.executor.command starts one of these per container:

    python -m schedctl.cli.executor --shard 1 --topology-name wordcount ...

It reports the instances packed into its shard and holds the container until
SIGTERM/SIGINT, which is how the schedulers stop executors on close().
"""

import argparse
import logging
import sys

from schedctl.cli.common import default_log_level
from schedctl.core.shutdown import ShutdownSignal
from schedctl.logging_utils import setup_logging

logger = logging.getLogger(__name__)


def shard_instances(distribution: str, shard: int) -> list[tuple[str, int, int]]:
    """Instances assigned to one container by an instance distribution string.

    Returns:
        (component, task_id, component_index) tuples, empty if the shard is not listed
    """
    for part in distribution.split(","):
        fields = part.split(":")
        if not fields[0] or int(fields[0]) != shard:
            continue
        triples = fields[1:]
        if len(triples) % 3:
            raise ValueError(f"Malformed container entry in instance distribution: {part!r}")
        return [
            (triples[i], int(triples[i + 1]), int(triples[i + 2]))
            for i in range(0, len(triples), 3)
        ]
    return []


def _parse_command_line_args(args: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the executor for one topology container")
    parser.add_argument("--shard", type=int, required=True, help="Container id")
    parser.add_argument("--topology-name", required=True)
    parser.add_argument("--topology-id", required=True)
    parser.add_argument("--topology-defn", required=True, help="Path to the topology definition file")
    parser.add_argument("--package", required=True, help="Path to the topology package")
    parser.add_argument("--instance-distribution", required=True)
    parser.add_argument("--log-level", default=default_log_level(), help="Log level")
    return parser.parse_args(args)


def main(args: list[str] | None = None, shutdown_signal: ShutdownSignal | None = None) -> None:
    """Main entry point."""
    parsed = _parse_command_line_args(args)
    setup_logging(parsed.log_level)

    if shutdown_signal is None:
        shutdown_signal = ShutdownSignal()
        shutdown_signal.install_signal_handlers()

    try:
        instances = shard_instances(parsed.instance_distribution, parsed.shard)
    except ValueError as e:
        logger.error("%s", e)
        sys.exit(1)

    logger.info(
        "Executor for container %d of %s (%s): %d instances",
        parsed.shard,
        parsed.topology_name,
        parsed.topology_id,
        len(instances),
    )
    for component, task_id, index in instances:
        logger.info("  %s task %d (index %d)", component, task_id, index)

    shutdown_signal.wait()

    logger.info("Executor for container %d stopping: %s", parsed.shard, shutdown_signal.reason)
    sys.exit(0)


if __name__ == "__main__":
    main()
