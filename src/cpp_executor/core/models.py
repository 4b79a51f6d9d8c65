from __future__ import annotations
import io
import signal
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

from .utils import decode_output


class Outcome(str, Enum):
    COMPLETED = "COMPLETED"
    SIGNALED = "SIGNALED"
    TIMED_OUT = "TIMED_OUT"
    SPAWN_FAILED = "SPAWN_FAILED"
    WAIT_FAILED = "WAIT_FAILED"


@dataclass(frozen=True)
class CommandSpec:
    command: str                                  # passed to `<shell> -c`
    timeout_s: Optional[float] = None
    stdin: Optional[Union[bytes, BinaryIO]] = None
    cwd: Optional[Path] = None

    def stdin_stream(self) -> Optional[BinaryIO]:
        if self.stdin is None:
            return None
        if isinstance(self.stdin, (bytes, bytearray)):
            return io.BytesIO(self.stdin) if self.stdin else None
        return self.stdin


@dataclass(frozen=True)
class ProcessResult:
    outcome: Outcome
    code: Optional[int] = None      # exit code or signal number
    output: bytes = b""             # merged stdout/stderr
    truncated: bool = False
    duration_s: float = 0.0
    error: Optional[str] = None     # spawn/wait failure reason

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.COMPLETED and self.code == 0

    @property
    def text(self) -> str:
        return decode_output(self.output, self.truncated)

    def describe(self, timeout_label: str = "Execution") -> Optional[str]:
        """
        One-line classification of a failed run, or None when the run succeeded.
        """
        if self.ok:
            return None
        if self.outcome is Outcome.COMPLETED:
            return f"Error: Process exited with code {self.code}"
        if self.outcome is Outcome.SIGNALED:
            try:
                name = signal.Signals(self.code).name
            except ValueError:
                return f"Error: Process terminated by signal {self.code}"
            return f"Error: Process terminated by signal {self.code} ({name})"
        if self.outcome is Outcome.TIMED_OUT:
            return f"Error: {timeout_label} timed out"
        if self.outcome is Outcome.SPAWN_FAILED:
            return f"Error: Failed to start process: {self.error}"
        return f"Error: Failed to wait for process: {self.error}"


@dataclass
class Job:
    job_id: str
    workspace: Optional[Path] = None
    results: List[ProcessResult] = field(default_factory=list)
    output: str = ""
    success: bool = False

    def finish(self, output: str, success: bool) -> "Job":
        self.output = output
        self.success = success
        return self
