"""
Launcher mailbox - single slot, expiring "launch this version" instructions
"""
import logging
import threading
import time

from geserver.constants import LAUNCHER_INSTRUCTION_TTL

logger = logging.getLogger("main")

IDLE = {"action": "idle"}


class LauncherMailbox:
    """
    One pending instruction per title. A new post replaces the previous one.
    Instructions are handed out once and are ignored when older than the TTL;
    stale slots are only cleared when read or overwritten.
    """

    def __init__(self, ttl_seconds=LAUNCHER_INSTRUCTION_TTL, clock=time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._slots = {}
        self._lock = threading.Lock()

    def post(self, title_id, version):
        instruction = {
            "action": "launch",
            "titleId": str(title_id),
            "version": str(version),
            "timestamp": self._clock(),
        }
        with self._lock:
            self._slots[str(title_id)] = instruction
        logger.info(f"Launch instruction queued for {title_id} version {version}")
        return dict(instruction)

    def poll(self, title_id, client_id=None):
        # client_id is accepted for future addressing, every client shares the slot
        with self._lock:
            instruction = self._slots.pop(str(title_id), None)

        if instruction is None:
            return dict(IDLE)

        age = self._clock() - instruction["timestamp"]
        if age >= self.ttl_seconds:
            logger.debug(f"Dropped expired launch instruction for {title_id} ({age:.1f}s old)")
            return dict(IDLE)

        logger.info(f"Launch instruction for {title_id} delivered to client {client_id or 'unknown'}")
        return instruction

    def pending(self):
        with self._lock:
            return len(self._slots)
