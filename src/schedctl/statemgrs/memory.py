# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""In-memory state manager."""

import threading
from collections.abc import Mapping
from typing import Any

from schedctl.core.components import Capability, register_component
from schedctl.core.statemgr import SchedulerLocation


@register_component("memory", Capability.STATE_MANAGER)
class InMemoryStateManager:
    """Keeps scheduler locations in a dict owned by this instance.

    Records are stored serialized, so a location that cannot round-trip
    through JSON fails here the same way it would in a real store.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._locations: dict[str, str] = {}
        self.initialized = False
        self.closed = False

    def initialize(self, config: Mapping[str, Any]) -> None:
        self.initialized = True

    def set_scheduler_location(self, location: SchedulerLocation, topology_name: str) -> None:
        with self._lock:
            self._locations[topology_name] = location.to_json()

    def get_scheduler_location(self, topology_name: str) -> SchedulerLocation | None:
        with self._lock:
            data = self._locations.get(topology_name)
        return SchedulerLocation.from_json(data) if data is not None else None

    def close(self) -> None:
        self.closed = True
