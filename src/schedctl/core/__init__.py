# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Core modules for schedctl.

This package contains:
- config: Layered configuration assembly and expansion
- components: Pluggable component protocols and factory
- statemgr: Coordination session and scheduler location records
- packing: Packing plan types
- lifecycle: The scheduler lifecycle state machine
- server: Admin HTTP server
- shutdown: Shutdown signal
"""

from .components import Capability, create_component, register_component
from .config import Config, assemble, expand, load_sandbox_config, require
from .errors import (
    ComponentResolutionError,
    ConfigurationError,
    CoordinationError,
    PackingError,
    SchedctlError,
    SchedulingActionError,
    ServerStartError,
)
from .lifecycle import LifecycleState, SchedulerLifecycle
from .packing import ContainerPlan, InstancePlan, PackingPlan
from .server import AdminServer, create_admin_app
from .shutdown import ShutdownSignal
from .statemgr import CoordinationSession, SchedulerLocation
from .topology import TopologyDescriptor, load_topology, lookup_topology_defn_file

__all__ = [
    # Config
    "Config",
    "assemble",
    "expand",
    "load_sandbox_config",
    "require",
    # Components
    "Capability",
    "create_component",
    "register_component",
    # Errors
    "SchedctlError",
    "ConfigurationError",
    "ComponentResolutionError",
    "CoordinationError",
    "PackingError",
    "ServerStartError",
    "SchedulingActionError",
    # Lifecycle
    "LifecycleState",
    "SchedulerLifecycle",
    # Packing
    "ContainerPlan",
    "InstancePlan",
    "PackingPlan",
    # Server
    "AdminServer",
    "create_admin_app",
    "ShutdownSignal",
    # Coordination
    "CoordinationSession",
    "SchedulerLocation",
    # Topology
    "TopologyDescriptor",
    "load_topology",
    "lookup_topology_defn_file",
]
