from __future__ import annotations
import shutil
import sys
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import structlog

from ..core.errors import WorkspaceError

log = structlog.get_logger(__name__)


class WorkspaceManager:
    """
    Per-job scratch directories:
      <root>/<prefix><job_id>_XXXXXXXX/
        ├─ main.cpp     (submitted source)
        ├─ main         (compiled artifact)
        └─ input.txt    (optional stdin content)
    """

    def __init__(self, root: Optional[Path] = None, prefix: str = "cpp_exec_"):
        self.root = root
        self.prefix = prefix

    def create(self, job_id: str = "") -> Path:
        # mkdtemp gives a fresh name even for a repeated job_id
        prefix = f"{self.prefix}{job_id}_" if job_id else self.prefix
        try:
            if self.root is not None:
                self.root.mkdir(parents=True, exist_ok=True)
            path = Path(tempfile.mkdtemp(prefix=prefix, dir=self.root))
        except OSError as e:
            raise WorkspaceError(f"cannot create workspace under {self.root or tempfile.gettempdir()}: {e}") from e
        log.debug("workspace_created", path=str(path))
        return path

    def destroy(self, path: Path) -> bool:
        """
        Remove the workspace and everything in it. Best-effort: failures are
        logged and reported through the return value, never raised.
        """
        failures = []

        def _onexc(func, p, exc):
            failures.append(p)
            log.warning("workspace_cleanup_failed", path=str(p), error=str(exc))

        if sys.version_info >= (3, 12):
            shutil.rmtree(path, onexc=_onexc)
        else:
            shutil.rmtree(path, onerror=lambda func, p, exc_info: _onexc(func, p, exc_info[1]))
        if not failures:
            log.debug("workspace_removed", path=str(path))
        return not failures

    @contextmanager
    def workspace(self, job_id: str = "") -> Iterator[Path]:
        path = self.create(job_id)
        try:
            yield path
        finally:
            self.destroy(path)
