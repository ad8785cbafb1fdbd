# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Kill a running topology.

Looks up the scheduler location in the configured state manager and sends
a kill request to the scheduler's admin endpoint:

    schedctl-kill <cluster> <role> <environ> <topology_name>
    schedctl-kill <cluster> <role> <environ> <topology_name> --endpoint host:port
"""

import argparse
import logging
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from schedctl.cli.common import base_config_layers, default_conf_dir, default_log_level
from schedctl.core import keys
from schedctl.core.client import SchedulerClient
from schedctl.core.components import Capability, create_component
from schedctl.core.config import assemble, expand, require
from schedctl.core.errors import CoordinationError
from schedctl.core.statemgr import CoordinationSession
from schedctl.logging_utils import setup_logging

logger = logging.getLogger(__name__)


def _parse_command_line_args(args: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Send a kill request to a topology's scheduler",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("cluster", help="Name of the cluster")
    parser.add_argument("role", help="Role the topology runs as")
    parser.add_argument("environ", help="Environment/tag of the topology")
    parser.add_argument("topology_name", help="Name of the topology to kill")
    parser.add_argument("--endpoint", help="Scheduler host:port; skips the state manager lookup")
    parser.add_argument("--conf-dir", type=Path, default=default_conf_dir(), help="Sandbox conf directory")
    parser.add_argument("--log-level", default=default_log_level(), help="Log level")
    return parser.parse_args(args)


def lookup_scheduler_endpoint(config: Mapping[str, Any], topology_name: str) -> str:
    """Read a topology's admin endpoint from the state manager.

    Raises:
        CoordinationError: If the store is unreachable or has no record
    """
    state_manager = create_component(require(config, keys.STATEMGR_CLASS), Capability.STATE_MANAGER)
    session = CoordinationSession(state_manager)
    try:
        session.open(config)
        location = session.get_location(topology_name)
    finally:
        session.close()

    if location is None:
        raise CoordinationError(f"No scheduler location registered for topology {topology_name}")
    return location.http_endpoint


def main(args: list[str] | None = None) -> None:
    """Main entry point."""
    parsed = _parse_command_line_args(args)
    setup_logging(parsed.log_level)

    try:
        config = expand(assemble(base_config_layers(parsed.cluster, parsed.role, parsed.environ, parsed.conf_dir)))
        endpoint = parsed.endpoint or lookup_scheduler_endpoint(config, parsed.topology_name)

        client = SchedulerClient(endpoint, timeout=float(config.get(keys.CLIENT_REQUEST_TIMEOUT, 10.0)))
        result = client.kill(parsed.topology_name)

    except Exception as e:
        logger.exception("Failed to kill topology %s: %s", parsed.topology_name, e)
        sys.exit(1)

    if result.get("already_requested"):
        logger.info("Topology %s was already shutting down", parsed.topology_name)
    else:
        logger.info("Kill request accepted for topology %s", parsed.topology_name)
    sys.exit(0)


if __name__ == "__main__":
    main()
