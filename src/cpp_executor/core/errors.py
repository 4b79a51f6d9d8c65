from __future__ import annotations


class ExecutorError(Exception):
    """Base class for failures raised inside the executor."""


class WorkspaceError(ExecutorError):
    """The per-job scratch directory could not be created."""
