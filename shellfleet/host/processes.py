"""psutil-backed process handles."""

from __future__ import annotations

import logging
import signal

import psutil

from shellfleet.core.models import ProcessState

logger = logging.getLogger(__name__)

_PSUTIL_STATES: dict[str, ProcessState] = {
    psutil.STATUS_RUNNING: ProcessState.RUNNING,
    psutil.STATUS_SLEEPING: ProcessState.RUNNING,
    psutil.STATUS_DISK_SLEEP: ProcessState.RUNNING,
    psutil.STATUS_IDLE: ProcessState.RUNNING,
    psutil.STATUS_WAKING: ProcessState.RUNNING,
    psutil.STATUS_PARKED: ProcessState.RUNNING,
    psutil.STATUS_STOPPED: ProcessState.STOPPED,
    psutil.STATUS_TRACING_STOP: ProcessState.STOPPED,
    psutil.STATUS_ZOMBIE: ProcessState.ZOMBIE,
    psutil.STATUS_DEAD: ProcessState.EXITED,
}


class PsutilProcessHandle:
    """Liveness view of one OS process.

    Reading `state` is a local, non-blocking query; a vanished or reaped
    process reads as EXITED.
    """

    def __init__(self, pid: int) -> None:
        self.pid = pid
        try:
            self._process: psutil.Process | None = psutil.Process(pid)
        except psutil.NoSuchProcess:
            self._process = None

    @property
    def state(self) -> ProcessState:
        process = self._process
        if process is None:
            return ProcessState.EXITED
        try:
            # is_running() also guards against pid reuse.
            if not process.is_running():
                return ProcessState.EXITED
            return _PSUTIL_STATES.get(process.status(), ProcessState.RUNNING)
        except psutil.NoSuchProcess:
            return ProcessState.EXITED
        except psutil.AccessDenied:
            return ProcessState.RUNNING

    def send_signal(self, sig: int) -> bool:
        """Signal the process. Returns False when it is already gone."""
        process = self._process
        if process is None:
            return False
        try:
            process.send_signal(sig)
            return True
        except (psutil.NoSuchProcess, ProcessLookupError):
            logger.debug("Process %d already gone, ignoring signal %d", self.pid, sig)
            return False

    def terminate(self) -> bool:
        return self.send_signal(signal.SIGTERM)

    def interrupt(self) -> bool:
        return self.send_signal(signal.SIGINT)

    def __repr__(self) -> str:
        return f"PsutilProcessHandle(pid={self.pid})"
