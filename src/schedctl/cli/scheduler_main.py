# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Scheduler process entry point.

Started once per topology by the submitter, inside the topology's sandbox:

    schedctl-scheduler <cluster> <role> <environ> <topology_name> <topology_package> <port>

The topology definition (<topology_name>.defn) is looked up in the working
directory. The process runs until a kill request arrives on the admin port
or it receives SIGINT/SIGTERM.
"""

import argparse
import logging
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from schedctl.cli.common import base_config_layers, default_conf_dir, default_log_level
from schedctl.core import keys
from schedctl.core.config import Config, assemble, expand
from schedctl.core.errors import ConfigurationError
from schedctl.core.lifecycle import SchedulerLifecycle
from schedctl.core.shutdown import ShutdownSignal
from schedctl.core.topology import (
    TopologyDescriptor,
    load_topology,
    lookup_topology_defn_file,
    topology_config_layer,
)
from schedctl.logging_utils import setup_logging

logger = logging.getLogger(__name__)


def _port(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port: {value!r}") from None
    if not 0 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"port out of range: {port}")
    return port


def _parse_command_line_args(args: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the scheduler for one topology",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("cluster", help="Name of the cluster")
    parser.add_argument("role", help="Role the topology runs as")
    parser.add_argument("environ", help="Environment/tag of the topology")
    parser.add_argument("topology_name", help="Name of the topology")
    parser.add_argument("topology_package", help="Path to the topology package (jar, pex or tar)")
    parser.add_argument("port", type=_port, help="Admin server port (0 picks a free port)")
    parser.add_argument(
        "--conf-dir",
        type=Path,
        default=default_conf_dir(),
        help="Directory with sandbox override YAML files",
    )
    parser.add_argument(
        "--working-dir",
        type=Path,
        default=Path("."),
        help="Directory containing <topology_name>.defn",
    )
    parser.add_argument("--log-level", default=default_log_level(), help="Log level")
    parser.add_argument("--show-config", action="store_true", help="Print the final configuration before running")
    return parser.parse_args(args)


def build_config(args: argparse.Namespace) -> tuple[Config, TopologyDescriptor]:
    """Load the topology and assemble the expanded scheduler config.

    Layers, lowest precedence first: cluster defaults, sandbox overrides,
    command line, topology.

    Raises:
        ConfigurationError: If the topology or configuration is invalid
    """
    defn_file = lookup_topology_defn_file(args.working_dir, args.topology_name)
    topology = load_topology(defn_file)
    if topology.name != args.topology_name:
        raise ConfigurationError(
            f"Topology definition {defn_file} is for {topology.name!r}, expected {args.topology_name!r}"
        )

    layers = base_config_layers(args.cluster, args.role, args.environ, args.conf_dir, args.working_dir)
    layers[-1][keys.SCHEDULER_SERVER_PORT] = args.port
    layers.append(topology_config_layer(args.topology_package, defn_file.resolve(), topology))

    config = expand(assemble(layers))
    return config, topology


def print_config(config: Mapping[str, Any], console: Console | None = None) -> None:
    """Render the configuration as a table."""
    table = Table(title="Scheduler Configuration", show_header=True, header_style="bold cyan")
    table.add_column("Key", style="green")
    table.add_column("Value", style="yellow")

    for key in sorted(config):
        table.add_row(key, str(config[key]))

    (console or Console()).print(table)


def main(args: list[str] | None = None) -> None:
    """Main entry point."""
    parsed = _parse_command_line_args(args)
    setup_logging(parsed.log_level)

    try:
        config, topology = build_config(parsed)
        logger.info("Loaded scheduler config for %s with %d keys", topology.name, len(config))
        logger.debug("Scheduler config: %s", config)
        if parsed.show_config:
            print_config(config)

        shutdown_signal = ShutdownSignal()
        shutdown_signal.install_signal_handlers()

        lifecycle = SchedulerLifecycle(
            config=config,
            topology=topology,
            server_port=parsed.port,
            shutdown_signal=shutdown_signal,
        )
        exit_code = lifecycle.run()

    except Exception as e:
        logger.exception("Fatal error: %s", e)
        sys.exit(1)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
