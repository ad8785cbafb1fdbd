# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Scheduler implementations.

Supported schedulers (scheduler.class):
- local: one executor subprocess per container on this host
- slurm: one srun step per container inside the current SLURM allocation
"""

from .base import ExecutorScheduler, ManagedProcess
from .local import LocalScheduler
from .slurm import SlurmScheduler

__all__ = [
    "ExecutorScheduler",
    "LocalScheduler",
    "ManagedProcess",
    "SlurmScheduler",
]
