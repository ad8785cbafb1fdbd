# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
schedctl - Per-topology scheduler process for stream-processing clusters.

Key modules:
- core.config: Layered configuration assembly and ${key} expansion
- core.components: Pluggable state manager / packer / scheduler factory
- core.lifecycle: Scheduler lifecycle from startup to teardown
- core.server: Admin HTTP endpoint (kill, health)
- statemgrs, packers, schedulers: Built-in component implementations
- cli.scheduler_main: Scheduler process entry point
- cli.kill: Send a kill request to a running scheduler
- cli.executor: Default container executor

Usage:
    schedctl-scheduler <cluster> <role> <environ> <topology_name> <package> <port>
    schedctl-kill <cluster> <role> <environ> <topology_name>
"""

__version__ = "0.1.0"

from .core.config import Config, assemble, expand
from .core.lifecycle import LifecycleState, SchedulerLifecycle
from .core.shutdown import ShutdownSignal
from .logging_utils import setup_logging

__all__ = [
    "__version__",
    "Config",
    "assemble",
    "expand",
    "LifecycleState",
    "SchedulerLifecycle",
    "ShutdownSignal",
    "setup_logging",
]
