from __future__ import annotations
from typing import Optional

import structlog

from ..core.errors import WorkspaceError
from ..core.models import Job
from ..core.utils import new_job_id
from ..runner.process_runner import ProcessRunner
from ..settings import Settings, get_settings
from .compiler import CompilationPipeline
from .executor import ExecutionPipeline
from .workspace import WorkspaceManager

log = structlog.get_logger(__name__)


class Orchestrator:
    """
    One job per call: workspace -> compile -> (on success) run -> teardown.
    Every failure is folded into the job's (output, success) pair.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.s = settings or get_settings()
        self.runner = ProcessRunner(shell=self.s.shell, max_output_bytes=self.s.max_output_bytes)
        self.workspaces = WorkspaceManager(self.s.workspace_root, self.s.workspace_prefix)
        self.compiler = CompilationPipeline(
            self.runner,
            self.s.compile_command,
            timeout_s=self.s.compile_timeout_s,
            source_name=self.s.source_name,
            artifact_name=self.s.artifact_name,
        )
        self.executor = ExecutionPipeline(
            self.runner,
            timeout_s=self.s.run_timeout_s,
            artifact_name=self.s.artifact_name,
            input_name=self.s.input_name,
        )

    def execute(self, code: str, stdin_text: str = "") -> Job:
        job = Job(job_id=new_job_id())
        with structlog.contextvars.bound_contextvars(job_id=job.job_id):
            log.info("job_started", code_len=len(code), input_len=len(stdin_text))
            try:
                with self.workspaces.workspace(job.job_id) as ws:
                    job.workspace = ws
                    if self.compiler.compile(job, code):
                        self.executor.run(job, stdin_text)
            except WorkspaceError as e:
                log.error("workspace_error", error=str(e))
                job.finish("Error: Failed to create temporary directory", False)
            except Exception as e:
                log.exception("job_crashed")
                job.finish(f"Error: Internal error: {e}", False)
            log.info("job_finished", success=job.success, stages=len(job.results))
        return job
