# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
State manager implementations.

Supported state managers (statemgr.class):
- memory: process-local, for tests and dry runs
- localfs: JSON records under statemgr.root.path on a shared filesystem
- etcd: records in etcd through its v3 JSON gateway
"""

from .etcd import EtcdStateManager
from .localfs import LocalFileSystemStateManager
from .memory import InMemoryStateManager

__all__ = [
    "EtcdStateManager",
    "InMemoryStateManager",
    "LocalFileSystemStateManager",
]
