from __future__ import annotations
import os
import select
import selectors
import signal
import subprocess
import time
from typing import BinaryIO, Optional

import structlog

from ..core.models import CommandSpec, Outcome, ProcessResult

log = structlog.get_logger(__name__)

_READ_CHUNK = 32 * 1024
# writes of at most PIPE_BUF bytes never block once the pipe reports writable
_PIPE_BUF = getattr(select, "PIPE_BUF", 512)
# how often the loop checks whether the direct child has exited
_POLL_S = 0.05
# upper bound on collecting leftover output after the group is killed
_DRAIN_S = 0.5


class _Capture:
    """Accumulates child output up to `limit` bytes (0 = unlimited), dropping the rest."""

    def __init__(self, limit: int = 0):
        self.limit = limit
        self.buf = bytearray()
        self.dropped = 0

    def feed(self, chunk: bytes) -> None:
        if self.limit and len(self.buf) + len(chunk) > self.limit:
            room = max(0, self.limit - len(self.buf))
            self.buf += chunk[:room]
            self.dropped += len(chunk) - room
        else:
            self.buf += chunk

    @property
    def truncated(self) -> bool:
        return self.dropped > 0


def _remaining(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    return deadline - time.monotonic()


def _exited(proc: subprocess.Popen) -> bool:
    # WNOWAIT leaves the child a zombie, so pid and pgid stay reserved until wait()
    return os.waitid(os.P_PID, proc.pid, os.WEXITED | os.WNOHANG | os.WNOWAIT) is not None


def _kill_group(proc: subprocess.Popen) -> None:
    # child runs as session leader, so pgid == pid
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        pass


class ProcessRunner:
    """
    Runs one shell command per call with stdout+stderr merged into a single
    captured stream, stdin fed from the CommandSpec, and a hard wall-clock
    deadline that does not depend on the child's I/O.

    Never raises for child failures: spawn errors, signals, timeouts and
    reaping errors all come back as a classified ProcessResult.
    """

    def __init__(self, shell: str = "/bin/sh", max_output_bytes: int = 0):
        self.shell = shell
        self.max_output_bytes = max_output_bytes

    def run(self, spec: CommandSpec) -> ProcessResult:
        start = time.monotonic()
        deadline = start + spec.timeout_s if spec.timeout_s is not None else None
        stream = spec.stdin_stream()

        try:
            proc = subprocess.Popen(
                [self.shell, "-c", spec.command],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                cwd=str(spec.cwd) if spec.cwd else None,
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            log.warning("spawn_failed", command=spec.command, error=str(e))
            return ProcessResult(
                outcome=Outcome.SPAWN_FAILED,
                error=str(e),
                duration_s=time.monotonic() - start,
            )

        capture = _Capture(self.max_output_bytes)
        try:
            timed_out = self._communicate(proc, stream, capture, deadline)
            if timed_out:
                log.info("deadline_expired", pid=proc.pid, timeout_s=spec.timeout_s)
            # leader is exited-but-unreaped (or still running): its pgid cannot be recycled yet
            _kill_group(proc)
            self._drain(proc, capture)
            proc.wait()
        except OSError as e:
            log.warning("wait_failed", pid=proc.pid, error=str(e))
            return ProcessResult(
                outcome=Outcome.WAIT_FAILED,
                output=bytes(capture.buf),
                truncated=capture.truncated,
                error=str(e),
                duration_s=time.monotonic() - start,
            )
        finally:
            self._release(proc)

        dur = time.monotonic() - start
        if timed_out:
            outcome, code = Outcome.TIMED_OUT, None
        elif proc.returncode < 0:
            outcome, code = Outcome.SIGNALED, -proc.returncode
        else:
            outcome, code = Outcome.COMPLETED, proc.returncode

        log.debug("process_finished", outcome=outcome.value, code=code, duration_s=round(dur, 3))
        return ProcessResult(
            outcome=outcome,
            code=code,
            output=bytes(capture.buf),
            truncated=capture.truncated,
            duration_s=dur,
        )

    # ---------- internals ----------

    @staticmethod
    def _communicate(
        proc: subprocess.Popen,
        stream: Optional[BinaryIO],
        capture: _Capture,
        deadline: Optional[float],
    ) -> bool:
        """
        Feed stdin and drain stdout until the direct child exits.
        Returns True when the deadline fired first.

        Descendants that keep stdout open do not hold the call: only the
        child's own exit ends the loop.
        """
        with selectors.DefaultSelector() as sel:
            if stream is None:
                proc.stdin.close()
            else:
                sel.register(proc.stdin, selectors.EVENT_WRITE)
            sel.register(proc.stdout, selectors.EVENT_READ)

            pending = b""
            while True:
                timeout = _remaining(deadline)
                if timeout is not None and timeout <= 0:
                    return True
                if _exited(proc):
                    return False

                wait_s = _POLL_S if timeout is None else min(_POLL_S, timeout)
                if not sel.get_map():
                    time.sleep(wait_s)
                    continue

                for key, _ in sel.select(wait_s):
                    if key.fileobj is proc.stdin:
                        if not pending:
                            pending = stream.read(_PIPE_BUF)
                        if not pending:
                            sel.unregister(proc.stdin)
                            proc.stdin.close()
                            continue
                        try:
                            written = os.write(key.fd, pending)
                        except BrokenPipeError:
                            # child stopped reading; the rest of the input is irrelevant
                            sel.unregister(proc.stdin)
                            proc.stdin.close()
                            continue
                        pending = pending[written:]
                    else:
                        chunk = os.read(key.fd, _READ_CHUNK)
                        if not chunk:
                            sel.unregister(proc.stdout)
                            proc.stdout.close()
                            continue
                        capture.feed(chunk)

    @staticmethod
    def _drain(proc: subprocess.Popen, capture: _Capture) -> None:
        """Collect output still buffered in the pipe once the group is dead."""
        if proc.stdout.closed:
            return
        end = time.monotonic() + _DRAIN_S
        with selectors.DefaultSelector() as sel:
            sel.register(proc.stdout, selectors.EVENT_READ)
            while True:
                left = end - time.monotonic()
                if left <= 0 or not sel.select(left):
                    return
                chunk = os.read(proc.stdout.fileno(), _READ_CHUNK)
                if not chunk:
                    return
                capture.feed(chunk)

    @staticmethod
    def _release(proc: subprocess.Popen) -> None:
        for pipe in (proc.stdin, proc.stdout):
            if pipe is not None and not pipe.closed:
                try:
                    pipe.close()
                except BrokenPipeError:
                    pass
        if proc.returncode is None:
            # kill before reaping, never after
            _kill_group(proc)
            try:
                proc.wait()
            except OSError as e:
                log.warning("reap_failed", pid=proc.pid, error=str(e))
