# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Local scheduler: runs every container as a subprocess of this host."""

import os
import subprocess
from pathlib import Path

from schedctl.core.components import Capability, register_component
from schedctl.core.packing import ContainerPlan

from .base import ExecutorScheduler


@register_component("local", Capability.SCHEDULER)
class LocalScheduler(ExecutorScheduler):
    @property
    def name(self) -> str:
        return "Local"

    def launch(self, command: list[str], log_file: Path, container: ContainerPlan) -> subprocess.Popen:
        env = dict(os.environ)
        env["SCHEDCTL_CONTAINER_ID"] = str(container.id)

        with open(log_file, "w") as log:
            return subprocess.Popen(
                command,
                stdout=log,
                stderr=subprocess.STDOUT,
                cwd=self.working_dir,
                env=env,
            )
