# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Scheduler lifecycle.

Drives one scheduling session through a fixed, linear sequence:
1. Create the state manager, packer and scheduler
2. Pack the topology
3. Initialize the scheduler with the packing plan
4. Start the admin server
5. Publish the scheduler location
6. Schedule the packing plan
7. Wait for the shutdown signal
8. Release everything in reverse order
"""

import contextlib
import enum
import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

from . import keys
from .components import Capability, create_component
from .config import Config, assemble, require
from .errors import CoordinationError, PackingError, SchedctlError, SchedulingActionError
from .packing import PackingPlan
from .server import AdminServer, create_admin_app
from .shutdown import ShutdownSignal
from .statemgr import CoordinationSession, SchedulerLocation
from .topology import TopologyDescriptor, get_num_containers

logger = logging.getLogger(__name__)


class LifecycleState(enum.Enum):
    """Lifecycle states, in the only order they can occur."""

    CREATED = "created"
    CONFIGURED_COMPONENTS = "configured_components"
    PACKED = "packed"
    SCHEDULER_INITIALIZED = "scheduler_initialized"
    SERVER_RUNNING = "server_running"
    LOCATION_REGISTERED = "location_registered"
    SCHEDULED = "scheduled"
    AWAITING_SHUTDOWN = "awaiting_shutdown"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


@contextlib.contextmanager
def _errors_as(error_cls: type[SchedctlError], action: str) -> Iterator[None]:
    """Re-raise foreign exceptions from a component as error_cls."""
    try:
        yield
    except SchedctlError:
        raise
    except Exception as e:
        raise error_cls(f"{action} failed: {e}") from e


@dataclass
class SchedulerLifecycle:
    """Runs one scheduling session from component creation to teardown.

    Usage:
        lifecycle = SchedulerLifecycle(config=config, topology=topology, server_port=0)
        exit_code = lifecycle.run()
    """

    config: Config
    topology: TopologyDescriptor
    server_port: int
    shutdown_signal: ShutdownSignal = field(default_factory=ShutdownSignal)
    on_transition: Callable[[LifecycleState], None] | None = None

    state: LifecycleState = field(default=LifecycleState.CREATED, init=False)
    history: list[LifecycleState] = field(default_factory=list, init=False)
    failed_step: LifecycleState | None = field(default=None, init=False)

    session: CoordinationSession | None = field(default=None, init=False)
    packer: Any = field(default=None, init=False)
    scheduler: Any = field(default=None, init=False)
    server: AdminServer | None = field(default=None, init=False)
    runtime: Config | None = field(default=None, init=False)
    packing_plan: PackingPlan | None = field(default=None, init=False)
    location: SchedulerLocation | None = field(default=None, init=False)

    # (name, release) pairs in acquisition order
    _acquired: list[tuple[str, Callable[[], None]]] = field(default_factory=list, init=False, repr=False)

    def _transition(self, state: LifecycleState) -> None:
        logger.debug("Lifecycle: %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)
        if self.on_transition is not None:
            self.on_transition(state)

    def _step(self, state: LifecycleState, action: Callable[[], None]) -> None:
        try:
            action()
        except BaseException:
            self.failed_step = state
            raise
        self._transition(state)

    def _acquire(self, name: str, release: Callable[[], None]) -> None:
        self._acquired.append((name, release))

    def _release_all(self) -> None:
        """Release acquired resources in reverse order; every release is attempted once."""
        while self._acquired:
            name, release = self._acquired.pop()
            try:
                release()
                logger.debug("Released %s", name)
            except Exception as e:
                logger.exception("Failed to release %s: %s", name, e)

    # =========================================================================
    # Steps
    # =========================================================================

    def configure_components(self) -> None:
        """Create the state manager, packer and scheduler, and build the runtime config."""
        config = self.config

        state_manager = create_component(require(config, keys.STATEMGR_CLASS), Capability.STATE_MANAGER)
        session = CoordinationSession(state_manager)
        # Registered before open() so a partially opened session is still closed
        self._acquire("coordination session", session.close)
        session.open(config)
        self.session = session

        self.runtime = assemble(
            [
                {
                    keys.TOPOLOGY_ID: self.topology.id,
                    keys.TOPOLOGY_NAME: self.topology.name,
                    keys.RUNTIME_TOPOLOGY_DEFINITION: self.topology,
                    keys.RUNTIME_STATE_MANAGER: session,
                    # One extra container for the scheduler itself
                    keys.RUNTIME_NUM_CONTAINERS: 1 + get_num_containers(self.topology),
                }
            ]
        )

        packer = create_component(require(config, keys.PACKING_CLASS), Capability.PACKER)
        with _errors_as(PackingError, "Packer initialization"):
            packer.initialize(config, self.runtime)
        self._acquire("packer", packer.close)
        self.packer = packer

        self.scheduler = create_component(require(config, keys.SCHEDULER_CLASS), Capability.SCHEDULER)

    def pack(self) -> None:
        """Compute the packing plan once and add it to the runtime config."""
        assert self.runtime is not None

        with _errors_as(PackingError, "Packing"):
            plan = self.packer.pack()
        if not isinstance(plan, PackingPlan):
            raise PackingError(f"Packer returned {type(plan).__name__}, expected PackingPlan")

        self.packing_plan = plan
        self.runtime = assemble([self.runtime, {keys.RUNTIME_INSTANCE_DISTRIBUTION: plan.to_distribution_string()}])
        logger.info("Instance distribution: %s", self.runtime[keys.RUNTIME_INSTANCE_DISTRIBUTION])

    def initialize_scheduler(self) -> None:
        assert self.runtime is not None

        with _errors_as(SchedulingActionError, "Scheduler initialization"):
            self.scheduler.initialize(self.config, self.runtime)
        self._acquire("scheduler", self.scheduler.close)

    def start_server(self) -> None:
        """Start the admin server; its bound port is known when this returns."""
        app = create_admin_app(self.topology.name, self.shutdown_signal)
        server = AdminServer(
            app,
            host=str(self.config.get(keys.SCHEDULER_SERVER_HOST, "0.0.0.0")),
            port=self.server_port,
            start_timeout=float(self.config.get(keys.SCHEDULER_SERVER_START_TIMEOUT, 10.0)),
        )
        server.start()
        self._acquire("admin server", server.stop)
        self.server = server

    def register_location(self) -> None:
        """Publish where the admin server can be reached.

        Set to host:port by default, or to scheduler.server.public.endpoint
        when the server sits behind DNS or a proxy.
        """
        assert self.server is not None and self.session is not None

        endpoint = self.config.get(keys.SCHEDULER_SERVER_PUBLIC_ENDPOINT) or self.server.endpoint
        location = SchedulerLocation(topology_name=self.topology.name, http_endpoint=str(endpoint))
        try:
            self.session.register_location(location)
        except CoordinationError as e:
            if self.config.get(keys.SCHEDULER_LOCATION_REQUIRED):
                raise
            logger.error("Failed to register scheduler location, continuing without it: %s", e)
            return
        self.location = location

    def schedule(self) -> None:
        assert self.packing_plan is not None

        with _errors_as(SchedulingActionError, "Scheduling"):
            scheduled = self.scheduler.schedule(self.packing_plan)
        if not scheduled:
            raise SchedulingActionError(f"Scheduler failed to schedule topology {self.topology.name}")

    # =========================================================================
    # Main flow
    # =========================================================================

    def run(self) -> int:
        """Run the complete session.

        Returns:
            0 after a clean shutdown, 1 if any step failed
        """
        logger.info("Scheduling topology %s (id=%s)", self.topology.name, self.topology.id)
        exit_code = 1

        try:
            self._step(LifecycleState.CONFIGURED_COMPONENTS, self.configure_components)
            self._step(LifecycleState.PACKED, self.pack)
            self._step(LifecycleState.SCHEDULER_INITIALIZED, self.initialize_scheduler)
            self._step(LifecycleState.SERVER_RUNNING, self.start_server)
            self._step(LifecycleState.LOCATION_REGISTERED, self.register_location)
            self._step(LifecycleState.SCHEDULED, self.schedule)

            self._transition(LifecycleState.AWAITING_SHUTDOWN)
            logger.info("Waiting for termination...")
            self.shutdown_signal.wait()
            logger.info("Shutting down topology %s (%s)", self.topology.name, self.shutdown_signal.reason)
            exit_code = 0

        except Exception as e:
            step = self.failed_step.value if self.failed_step else self.state.value
            logger.exception("Scheduler failed at step %s: %s", step, e)
            exit_code = 1

        finally:
            self._transition(LifecycleState.SHUTTING_DOWN)
            self._release_all()
            self._transition(LifecycleState.TERMINATED)

        return exit_code
