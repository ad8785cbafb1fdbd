# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Coordination session around a state manager.

The scheduler publishes one SchedulerLocation per topology so other
processes (e.g. schedctl-kill) can find its admin endpoint.
"""

import json
import logging
from collections.abc import Mapping
from typing import Any, ClassVar, Type

import marshmallow
from marshmallow import Schema
from marshmallow_dataclass import dataclass

from .components import StateManagerProtocol
from .errors import CoordinationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchedulerLocation:
    """Where a topology's scheduler can be reached."""

    topology_name: str
    http_endpoint: str  # host:port

    Schema: ClassVar[Type[Schema]] = Schema

    def to_json(self) -> str:
        return json.dumps(self.Schema().dump(self), sort_keys=True)

    @classmethod
    def from_json(cls, data: str | bytes) -> "SchedulerLocation":
        """Parse a serialized location record.

        Raises:
            CoordinationError: If the record is malformed
        """
        try:
            return cls.Schema().load(json.loads(data))
        except (ValueError, marshmallow.ValidationError) as e:
            raise CoordinationError(f"Malformed scheduler location record: {e}") from e


def scheduler_location_key(root: str, topology_name: str) -> str:
    """Key under which a topology's scheduler location is stored."""
    return f"{root.rstrip('/')}/schedulers/{topology_name}"


class CoordinationSession:
    """Owns a state manager for the lifetime of the scheduler process.

    Usage:
        session = CoordinationSession(create_component(name, Capability.STATE_MANAGER))
        session.open(config)
        session.register_location(SchedulerLocation("wordcount", "host:9000"))
        session.close()
    """

    def __init__(self, state_manager: StateManagerProtocol):
        self.state_manager = state_manager
        self._opened = False
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    def open(self, config: Mapping[str, Any]) -> None:
        """Connect the underlying state manager.

        Raises:
            CoordinationError: If the state manager cannot connect
        """
        # Mark opened first so close() still releases a partially opened manager
        self._opened = True
        try:
            self.state_manager.initialize(config)
        except CoordinationError:
            raise
        except Exception as e:
            raise CoordinationError(f"Failed to initialize state manager: {e}") from e
        logger.info("Coordination session opened (%s)", type(self.state_manager).__name__)

    def register_location(self, location: SchedulerLocation) -> None:
        """Publish the scheduler location, overwriting any previous one.

        Raises:
            CoordinationError: If the session is not open or the write fails
        """
        self._ensure_open()
        logger.info("Setting scheduler location: %s -> %s", location.topology_name, location.http_endpoint)
        try:
            self.state_manager.set_scheduler_location(location, location.topology_name)
        except CoordinationError:
            raise
        except Exception as e:
            raise CoordinationError(f"Failed to set scheduler location for {location.topology_name}: {e}") from e

    def get_location(self, topology_name: str) -> SchedulerLocation | None:
        """Read a topology's scheduler location.

        Raises:
            CoordinationError: If the session is not open or the read fails
        """
        self._ensure_open()
        try:
            return self.state_manager.get_scheduler_location(topology_name)
        except CoordinationError:
            raise
        except Exception as e:
            raise CoordinationError(f"Failed to get scheduler location for {topology_name}: {e}") from e

    def close(self) -> None:
        """Release the state manager. Idempotent."""
        if not self._opened or self._closed:
            return
        self._closed = True
        try:
            self.state_manager.close()
        except Exception as e:
            raise CoordinationError(f"Failed to close state manager: {e}") from e
        logger.info("Coordination session closed")

    def _ensure_open(self) -> None:
        if not self.is_open:
            raise CoordinationError("Coordination session is not open")
