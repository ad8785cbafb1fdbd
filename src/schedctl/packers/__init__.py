# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Packer implementations.

Supported packers (packing.class):
- round_robin: spread instances evenly over a fixed number of containers
"""

from .round_robin import RoundRobinPacking

__all__ = ["RoundRobinPacking"]
