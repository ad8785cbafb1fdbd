# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Tests for the scheduler lifecycle."""

import socket
import threading

import pytest
import requests

from schedctl.core import keys
from schedctl.core.components import Capability, register_component
from schedctl.core.config import assemble
from schedctl.core.errors import CoordinationError
from schedctl.core.lifecycle import LifecycleState, SchedulerLifecycle
from schedctl.core.topology import ComponentSpec, TopologyDescriptor
from schedctl.statemgrs import InMemoryStateManager

# Calls made by the recording components, in order
EVENTS: list[str] = []


@register_component("test_recording", Capability.STATE_MANAGER)
class RecordingStateManager(InMemoryStateManager):
    def close(self) -> None:
        EVENTS.append("statemgr.close")
        super().close()


@register_component("test_unwritable", Capability.STATE_MANAGER)
class UnwritableStateManager(InMemoryStateManager):
    def set_scheduler_location(self, location, topology_name):
        raise CoordinationError("store is read-only")


@register_component("test_recording", Capability.SCHEDULER)
class RecordingScheduler:
    def __init__(self):
        self.plan = None
        self.runtime = None

    def initialize(self, config, runtime):
        EVENTS.append("scheduler.initialize")
        self.runtime = runtime

    def schedule(self, packing):
        EVENTS.append("scheduler.schedule")
        self.plan = packing
        return True

    def close(self):
        EVENTS.append("scheduler.close")


@register_component("test_failing_init", Capability.SCHEDULER)
class FailingInitScheduler(RecordingScheduler):
    def initialize(self, config, runtime):
        raise RuntimeError("no allocation")


@register_component("test_refusing", Capability.SCHEDULER)
class RefusingScheduler(RecordingScheduler):
    def schedule(self, packing):
        return False


WORDCOUNT = TopologyDescriptor(
    id="wordcount-1a2b3c",
    name="wordcount",
    components=[ComponentSpec(name="word", parallelism=2), ComponentSpec(name="count", parallelism=1)],
    containers=2,
)

FULL_RUN = [
    LifecycleState.CONFIGURED_COMPONENTS,
    LifecycleState.PACKED,
    LifecycleState.SCHEDULER_INITIALIZED,
    LifecycleState.SERVER_RUNNING,
    LifecycleState.LOCATION_REGISTERED,
    LifecycleState.SCHEDULED,
    LifecycleState.AWAITING_SHUTDOWN,
    LifecycleState.SHUTTING_DOWN,
    LifecycleState.TERMINATED,
]


def make_config(**overrides):
    base = {
        keys.TOPOLOGY_ID: WORDCOUNT.id,
        keys.TOPOLOGY_NAME: WORDCOUNT.name,
        keys.STATEMGR_CLASS: "test_recording",
        keys.PACKING_CLASS: "round_robin",
        keys.PACKING_INSTANCE_RAM_MB: 1024,
        keys.PACKING_CONTAINER_MAX_RAM_MB: 16384,
        keys.SCHEDULER_CLASS: "test_recording",
        keys.SCHEDULER_SERVER_HOST: "127.0.0.1",
        keys.SCHEDULER_SERVER_START_TIMEOUT: 10.0,
    }
    return assemble([base, {k.replace("__", "."): v for k, v in overrides.items()}])


def kill_when_waiting(lifecycle_ref: list):
    """on_transition hook that sends POST /kill once the lifecycle is waiting."""

    def on_transition(state):
        if state is LifecycleState.AWAITING_SHUTDOWN:
            lifecycle = lifecycle_ref[0]
            response = requests.post(
                f"http://{lifecycle.server.endpoint}/kill",
                json={"topology_name": "wordcount"},
                timeout=5,
            )
            assert response.status_code == 200

    return on_transition


@pytest.fixture(autouse=True)
def clear_events():
    EVENTS.clear()
    yield
    EVENTS.clear()


class TestLifecycleRun:
    """End-to-end runs with an in-memory state manager."""

    def test_wordcount_end_to_end(self):
        """A kill over HTTP ends a full run with exit code 0."""
        ref: list[SchedulerLifecycle] = []
        lifecycle = SchedulerLifecycle(
            config=make_config(),
            topology=WORDCOUNT,
            server_port=0,
            on_transition=kill_when_waiting(ref),
        )
        ref.append(lifecycle)

        exit_code = lifecycle.run()

        assert exit_code == 0
        assert lifecycle.history == FULL_RUN
        assert lifecycle.state is LifecycleState.TERMINATED
        assert lifecycle.failed_step is None

        # 3 instances, 1 + 2 containers
        assert lifecycle.packing_plan.num_containers == 3
        assert lifecycle.packing_plan.num_instances == 3
        assert lifecycle.scheduler.plan is lifecycle.packing_plan
        assert lifecycle.runtime[keys.RUNTIME_INSTANCE_DISTRIBUTION] == "1:count:1:0,2:word:2:0,3:word:3:1"
        assert lifecycle.runtime[keys.RUNTIME_NUM_CONTAINERS] == 3

        # Location published with the bound port
        port = lifecycle.server.port
        assert port > 0
        assert lifecycle.location.http_endpoint == f"127.0.0.1:{port}"
        assert lifecycle.session.state_manager.get_scheduler_location("wordcount") == lifecycle.location

    def test_resources_released_in_reverse(self):
        """The scheduler is closed before the coordination session."""
        ref: list[SchedulerLifecycle] = []
        lifecycle = SchedulerLifecycle(
            config=make_config(),
            topology=WORDCOUNT,
            server_port=0,
            on_transition=kill_when_waiting(ref),
        )
        ref.append(lifecycle)

        lifecycle.run()

        assert EVENTS == [
            "scheduler.initialize",
            "scheduler.schedule",
            "scheduler.close",
            "statemgr.close",
        ]
        assert not lifecycle.server.is_running
        assert lifecycle.session.is_open is False

    def test_trip_from_another_thread(self):
        """A trip from any thread releases the wait."""
        lifecycle = SchedulerLifecycle(config=make_config(), topology=WORDCOUNT, server_port=0)

        def on_transition(state):
            if state is LifecycleState.AWAITING_SHUTDOWN:
                threading.Thread(target=lifecycle.shutdown_signal.trip, args=("test",)).start()

        lifecycle.on_transition = on_transition

        assert lifecycle.run() == 0
        assert lifecycle.shutdown_signal.reason == "test"

    def test_pre_tripped_signal(self):
        """A signal tripped before run() ends the session right after scheduling."""
        lifecycle = SchedulerLifecycle(config=make_config(), topology=WORDCOUNT, server_port=0)
        lifecycle.shutdown_signal.trip("early")

        assert lifecycle.run() == 0
        assert "scheduler.schedule" in EVENTS


class TestLifecycleFailures:
    """Failure injection at each step."""

    def test_unknown_state_manager(self):
        """An unresolvable component fails the first step and nothing is acquired."""
        lifecycle = SchedulerLifecycle(
            config=make_config(**{"statemgr__class": "zookeeper"}),
            topology=WORDCOUNT,
            server_port=0,
        )

        assert lifecycle.run() == 1
        assert lifecycle.failed_step is LifecycleState.CONFIGURED_COMPONENTS
        assert lifecycle.history == [LifecycleState.SHUTTING_DOWN, LifecycleState.TERMINATED]
        assert lifecycle.session is None

    def test_packing_failure(self):
        """A packing error stops before the scheduler is initialized."""
        lifecycle = SchedulerLifecycle(
            config=make_config(**{"packing__container__max__ram__mb": 512}),
            topology=WORDCOUNT,
            server_port=0,
        )

        assert lifecycle.run() == 1
        assert lifecycle.failed_step is LifecycleState.PACKED
        assert EVENTS == ["statemgr.close"]

    def test_scheduler_initialize_failure(self):
        """The server never starts and the session is closed."""
        lifecycle = SchedulerLifecycle(
            config=make_config(**{"scheduler__class": "test_failing_init"}),
            topology=WORDCOUNT,
            server_port=0,
        )

        assert lifecycle.run() == 1
        assert lifecycle.failed_step is LifecycleState.SCHEDULER_INITIALIZED
        assert lifecycle.server is None
        assert lifecycle.session.is_open is False
        # A scheduler whose initialize failed is not closed
        assert EVENTS == ["statemgr.close"]

    def test_server_start_failure(self):
        """A taken port releases the scheduler and session but never stops a server."""
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        try:
            lifecycle = SchedulerLifecycle(
                config=make_config(),
                topology=WORDCOUNT,
                server_port=blocker.getsockname()[1],
            )

            assert lifecycle.run() == 1
        finally:
            blocker.close()

        assert lifecycle.failed_step is LifecycleState.SERVER_RUNNING
        assert lifecycle.server is None
        assert EVENTS == ["scheduler.initialize", "scheduler.close", "statemgr.close"]

    def test_location_failure_not_required(self):
        """A failed location write is logged and the run continues."""
        ref: list[SchedulerLifecycle] = []
        lifecycle = SchedulerLifecycle(
            config=make_config(**{"statemgr__class": "test_unwritable"}),
            topology=WORDCOUNT,
            server_port=0,
            on_transition=kill_when_waiting(ref),
        )
        ref.append(lifecycle)

        assert lifecycle.run() == 0
        assert lifecycle.location is None
        assert LifecycleState.SCHEDULED in lifecycle.history

    def test_location_failure_required(self):
        """With scheduler.location.required a failed write is fatal."""
        lifecycle = SchedulerLifecycle(
            config=make_config(**{"statemgr__class": "test_unwritable", "scheduler__location__required": True}),
            topology=WORDCOUNT,
            server_port=0,
        )

        assert lifecycle.run() == 1
        assert lifecycle.failed_step is LifecycleState.LOCATION_REGISTERED
        assert not lifecycle.server.is_running
        assert EVENTS == ["scheduler.initialize", "scheduler.close"]

    def test_schedule_refused(self):
        """A scheduler returning False fails the run after releasing everything."""
        lifecycle = SchedulerLifecycle(
            config=make_config(**{"scheduler__class": "test_refusing"}),
            topology=WORDCOUNT,
            server_port=0,
        )

        assert lifecycle.run() == 1
        assert lifecycle.failed_step is LifecycleState.SCHEDULED
        assert not lifecycle.server.is_running
        assert EVENTS == ["scheduler.initialize", "scheduler.close", "statemgr.close"]

    def test_public_endpoint(self):
        """scheduler.server.public.endpoint replaces host:port in the location."""
        ref: list[SchedulerLifecycle] = []
        lifecycle = SchedulerLifecycle(
            config=make_config(**{"scheduler__server__public__endpoint": "scheduler.example.com:443"}),
            topology=WORDCOUNT,
            server_port=0,
            on_transition=kill_when_waiting(ref),
        )
        ref.append(lifecycle)

        assert lifecycle.run() == 0
        assert lifecycle.location.http_endpoint == "scheduler.example.com:443"
