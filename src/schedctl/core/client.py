# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""HTTP client for a running scheduler's admin server."""

import logging

import requests

from .errors import SchedulingActionError

logger = logging.getLogger(__name__)


class SchedulerClient:
    """Sends admin requests to the scheduler at a host:port endpoint."""

    def __init__(self, endpoint: str, timeout: float = 10.0):
        self.base_url = endpoint if endpoint.startswith(("http://", "https://")) else f"http://{endpoint}"
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise SchedulingActionError(f"Scheduler at {self.base_url} unreachable: {e}") from e

        if response.status_code != 200:
            raise SchedulingActionError(f"{method} {path} failed: status {response.status_code}: {response.text}")

        try:
            return response.json()
        except ValueError as e:
            raise SchedulingActionError(f"{method} {path} returned invalid JSON: {e}") from e

    def health(self) -> dict:
        return self._request("GET", "/health")

    def kill(self, topology_name: str) -> dict:
        """Ask the scheduler to shut down the topology."""
        logger.info("Sending kill request for %s to %s", topology_name, self.base_url)
        return self._request("POST", "/kill", json={"topology_name": topology_name})
