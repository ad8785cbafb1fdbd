# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
etcd state manager.

Talks to etcd through the v3 JSON gateway, which expects keys and values
base64-encoded:
- GET  /health          connectivity check on initialize
- POST /v3/kv/put       {"key": b64, "value": b64}
- POST /v3/kv/range     {"key": b64} -> {"kvs": [{"key": b64, "value": b64}]}
"""

import base64
import logging
from collections.abc import Mapping
from typing import Any

import requests

from schedctl.core import keys
from schedctl.core.components import Capability, register_component
from schedctl.core.config import require
from schedctl.core.errors import CoordinationError
from schedctl.core.statemgr import SchedulerLocation, scheduler_location_key

logger = logging.getLogger(__name__)


def _b64(value: str) -> str:
    return base64.b64encode(value.encode()).decode()


@register_component("etcd", Capability.STATE_MANAGER)
class EtcdStateManager:
    """Stores records in etcd under statemgr.root.path."""

    def __init__(self):
        self.endpoint: str | None = None
        self.root: str = ""
        self.timeout: float = 5.0
        self._session: requests.Session | None = None

    def initialize(self, config: Mapping[str, Any]) -> None:
        self.endpoint = str(require(config, keys.STATEMGR_CONNECTION_STRING)).rstrip("/")
        self.root = str(require(config, keys.STATEMGR_ROOT_PATH))
        self.timeout = float(config.get(keys.STATEMGR_REQUEST_TIMEOUT, 5.0))
        self._session = requests.Session()

        health_url = f"{self.endpoint}/health"
        try:
            response = self._session.get(health_url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise CoordinationError(f"Cannot reach etcd at {self.endpoint}: {e}") from e
        if response.status_code != 200:
            raise CoordinationError(f"etcd at {self.endpoint} is unhealthy: status {response.status_code}")

        logger.info("Connected to etcd at %s", self.endpoint)

    def _post(self, path: str, payload: dict) -> dict:
        if self._session is None or self.endpoint is None:
            raise CoordinationError("State manager is not initialized")

        url = f"{self.endpoint}{path}"
        try:
            response = self._session.post(url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            raise CoordinationError(f"etcd request {path} failed: {e}") from e
        except ValueError as e:
            raise CoordinationError(f"etcd request {path} returned invalid JSON: {e}") from e

    def set_scheduler_location(self, location: SchedulerLocation, topology_name: str) -> None:
        key = scheduler_location_key(self.root, topology_name)
        self._post("/v3/kv/put", {"key": _b64(key), "value": _b64(location.to_json())})
        logger.debug("Put scheduler location at %s", key)

    def get_scheduler_location(self, topology_name: str) -> SchedulerLocation | None:
        key = scheduler_location_key(self.root, topology_name)
        result = self._post("/v3/kv/range", {"key": _b64(key)})
        kvs = result.get("kvs") or []
        if not kvs:
            return None
        return SchedulerLocation.from_json(base64.b64decode(kvs[0]["value"]))

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None
