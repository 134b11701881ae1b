"""Process termination through psutil."""

import psutil

from procmon.scheduler import TerminationResult


class PsutilProcessController:
    """Sends SIGTERM (a graceful termination request, not SIGKILL) to a PID."""

    def terminate(self, pid: int) -> TerminationResult:
        # os.kill() treats 0 and negative PIDs as process groups
        if pid <= 0:
            return TerminationResult(pid, False, f"Refusing to signal PID {pid}.")

        try:
            psutil.Process(pid).terminate()
        except psutil.NoSuchProcess:
            return TerminationResult(pid, False, f"Failed to kill process {pid}: no such process.")
        except psutil.AccessDenied:
            return TerminationResult(pid, False, f"Failed to kill process {pid}: permission denied (try sudo).")
        except OSError as exc:
            return TerminationResult(pid, False, f"Failed to kill process {pid}: {exc.strerror or exc}.")

        return TerminationResult(pid, True, f"Process {pid} terminated.")
