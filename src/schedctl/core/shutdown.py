# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Single-use shutdown gate shared by the lifecycle and the admin server."""

import logging
import signal
import threading

logger = logging.getLogger(__name__)


class ShutdownSignal:
    """A gate that is tripped once and stays tripped.

    trip() may be called from any thread, any number of times; exactly one
    call performs the transition. wait() blocks on a threading.Event, so it
    never spins and returns immediately once tripped.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.RLock()  # signal handlers may re-enter on the main thread
        self._reason: str | None = None

    def trip(self, reason: str = "unspecified") -> bool:
        """Trip the signal.

        Returns:
            True if this call tripped it, False if it was already tripped
        """
        with self._lock:
            if self._event.is_set():
                logger.debug("Shutdown already requested, ignoring trip (%s)", reason)
                return False
            self._reason = reason
            self._event.set()

        logger.info("Shutdown requested: %s", reason)
        return True

    def wait(self) -> None:
        """Block until the signal is tripped."""
        self._event.wait()

    def is_set(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        """Reason passed to the effective trip() call."""
        return self._reason

    def install_signal_handlers(self) -> None:
        """Trip on SIGINT and SIGTERM. Must be called from the main thread."""

        def signal_handler(signum, frame):
            self.trip(f"received {signal.Signals(signum).name}")

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)
