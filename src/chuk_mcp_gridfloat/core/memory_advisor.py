"""
Memory budget advisor.

Decides whether tiles should be loaded disk-backed (small-memory mode)
rather than resident, from the system's available memory.
"""

import logging

import psutil

from ..constants import DEFAULT_MEMORY_THRESHOLD_BYTES

logger = logging.getLogger(__name__)


class MemoryAdvisor:
    """Boolean advice: load tiles resident or disk-backed."""

    def __init__(
        self,
        threshold_bytes: int = DEFAULT_MEMORY_THRESHOLD_BYTES,
        force_small_memory: bool = False,
    ) -> None:
        self.threshold_bytes = threshold_bytes
        self.force_small_memory = force_small_memory

    def available_bytes(self) -> int:
        return int(psutil.virtual_memory().available)

    def use_small_memory(self) -> bool:
        if self.force_small_memory:
            return True

        available = self.available_bytes()
        small = available < self.threshold_bytes
        if small:
            logger.info(
                f"Available memory {available / 1e6:.0f} MB is below "
                f"{self.threshold_bytes / 1e6:.0f} MB; using disk-backed tiles"
            )
        return small
