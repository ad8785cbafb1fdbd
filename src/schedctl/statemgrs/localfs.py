# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Local filesystem state manager."""

import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from schedctl.core import keys
from schedctl.core.components import Capability, register_component
from schedctl.core.config import require
from schedctl.core.errors import CoordinationError
from schedctl.core.statemgr import SchedulerLocation, scheduler_location_key

logger = logging.getLogger(__name__)


@register_component("localfs", Capability.STATE_MANAGER)
class LocalFileSystemStateManager:
    """Stores records as JSON files under statemgr.root.path.

    Layout:
        <root>/schedulers/<topology_name>
    """

    def __init__(self):
        self.root: Path | None = None

    def initialize(self, config: Mapping[str, Any]) -> None:
        self.root = Path(require(config, keys.STATEMGR_ROOT_PATH))
        try:
            (self.root / "schedulers").mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CoordinationError(f"Cannot create state directory under {self.root}: {e}") from e
        logger.info("Local state root: %s", self.root)

    def _location_path(self, topology_name: str) -> Path:
        if self.root is None:
            raise CoordinationError("State manager is not initialized")
        return Path(scheduler_location_key(str(self.root), topology_name))

    def set_scheduler_location(self, location: SchedulerLocation, topology_name: str) -> None:
        path = self._location_path(topology_name)
        data = location.to_json()

        # Write to a temp file and rename so readers never see a partial record
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{topology_name}.")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(data)
            os.replace(tmp_path, path)
        except OSError as e:
            Path(tmp_path).unlink(missing_ok=True)
            raise CoordinationError(f"Cannot write scheduler location {path}: {e}") from e

        logger.debug("Wrote scheduler location to %s", path)

    def get_scheduler_location(self, topology_name: str) -> SchedulerLocation | None:
        path = self._location_path(topology_name)
        try:
            data = path.read_text()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CoordinationError(f"Cannot read scheduler location {path}: {e}") from e
        return SchedulerLocation.from_json(data)

    def close(self) -> None:
        self.root = None
