# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Configuration keys and cluster defaults.

Keys are dotted strings. Values in cluster_defaults() may reference other keys
with ${key} placeholders; they are resolved by config.expand() once all layers
have been assembled.
"""

from pathlib import Path
from typing import Any

# ============================================================================
# Command line
# ============================================================================

CLUSTER = "cluster"
ROLE = "role"
ENVIRON = "environ"

# ============================================================================
# Sandbox
# ============================================================================

USER_HOME = "user.home"
WORKING_DIRECTORY = "working.directory"
CONF_DIRECTORY = "conf.directory"

# ============================================================================
# Topology
# ============================================================================

TOPOLOGY_ID = "topology.id"
TOPOLOGY_NAME = "topology.name"
TOPOLOGY_DEFINITION_FILE = "topology.definition.file"
TOPOLOGY_PACKAGE_FILE = "topology.package.file"
TOPOLOGY_PACKAGE_TYPE = "topology.package.type"

# ============================================================================
# Pluggable components
# ============================================================================

STATEMGR_CLASS = "statemgr.class"
STATEMGR_ROOT_PATH = "statemgr.root.path"
STATEMGR_CONNECTION_STRING = "statemgr.connection.string"
STATEMGR_REQUEST_TIMEOUT = "statemgr.request.timeout.sec"

PACKING_CLASS = "packing.class"
PACKING_INSTANCE_RAM_MB = "packing.instance.ram.mb"
PACKING_CONTAINER_MAX_RAM_MB = "packing.container.max.ram.mb"

SCHEDULER_CLASS = "scheduler.class"
SCHEDULER_EXECUTOR_COMMAND = "scheduler.executor.command"
SCHEDULER_EXECUTOR_TERMINATE_TIMEOUT = "scheduler.executor.terminate.timeout.sec"
SCHEDULER_WORKING_DIRECTORY = "scheduler.working.directory"
SCHEDULER_SLURM_CONTAINER_IMAGE = "scheduler.slurm.container.image"
SCHEDULER_SLURM_CONTAINER_MOUNTS = "scheduler.slurm.container.mounts"
SCHEDULER_SLURM_ENVIRONMENT = "scheduler.slurm.environment"
SCHEDULER_SLURM_NODELIST = "scheduler.slurm.nodelist"

# ============================================================================
# Admin server
# ============================================================================

SCHEDULER_SERVER_HOST = "scheduler.server.host"
SCHEDULER_SERVER_PORT = "scheduler.server.port"
SCHEDULER_SERVER_PUBLIC_ENDPOINT = "scheduler.server.public.endpoint"
SCHEDULER_SERVER_START_TIMEOUT = "scheduler.server.start.timeout.sec"
SCHEDULER_LOCATION_REQUIRED = "scheduler.location.required"

CLIENT_REQUEST_TIMEOUT = "client.request.timeout.sec"

# ============================================================================
# Runtime (live objects, never read from files)
# ============================================================================

RUNTIME_TOPOLOGY_DEFINITION = "runtime.topology.definition"
RUNTIME_STATE_MANAGER = "runtime.scheduler.state.manager"
RUNTIME_NUM_CONTAINERS = "runtime.num.containers"
RUNTIME_INSTANCE_DISTRIBUTION = "runtime.instance.distribution"

# Sandbox override files, loaded from the conf directory in this order
SANDBOX_CONFIG_FILES = (
    "defaults.yaml",
    "statemgr.yaml",
    "packing.yaml",
    "scheduler.yaml",
    "client.yaml",
)

DEFAULT_EXECUTOR_COMMAND = (
    "{python} -m schedctl.cli.executor"
    " --shard {container_id}"
    " --topology-name {topology_name}"
    " --topology-id {topology_id}"
    " --topology-defn {topology_defn}"
    " --package {package}"
    " --instance-distribution {instance_distribution}"
)


def cluster_defaults() -> dict[str, Any]:
    """Built-in defaults, the first configuration layer."""
    return {
        USER_HOME: str(Path.home()),
        WORKING_DIRECTORY: str(Path.cwd()),
        STATEMGR_CLASS: "localfs",
        STATEMGR_ROOT_PATH: "${user.home}/.schedctl/state/${cluster}",
        STATEMGR_CONNECTION_STRING: "http://127.0.0.1:2379",
        STATEMGR_REQUEST_TIMEOUT: 5.0,
        PACKING_CLASS: "round_robin",
        PACKING_INSTANCE_RAM_MB: 1024,
        PACKING_CONTAINER_MAX_RAM_MB: 16384,
        SCHEDULER_CLASS: "local",
        SCHEDULER_EXECUTOR_COMMAND: DEFAULT_EXECUTOR_COMMAND,
        SCHEDULER_EXECUTOR_TERMINATE_TIMEOUT: 10.0,
        SCHEDULER_WORKING_DIRECTORY: "${working.directory}/${cluster}-${role}-${environ}",
        SCHEDULER_SERVER_HOST: "0.0.0.0",
        SCHEDULER_SERVER_START_TIMEOUT: 10.0,
        SCHEDULER_LOCATION_REQUIRED: False,
        CLIENT_REQUEST_TIMEOUT: 10.0,
    }
