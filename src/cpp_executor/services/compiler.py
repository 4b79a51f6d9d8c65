from __future__ import annotations
import shlex
from pathlib import Path

import structlog

from ..core.models import CommandSpec, Job, Outcome, ProcessResult
from ..core.utils import with_heading
from ..runner.process_runner import ProcessRunner

log = structlog.get_logger(__name__)


class CompilationPipeline:
    """
    Writes the submitted source into the workspace and builds it with the
    configured toolchain command, e.g. "g++ -std=c++17 -o {output} {source}".
    """

    def __init__(
        self,
        runner: ProcessRunner,
        command_template: str,
        timeout_s: float = 30,
        source_name: str = "main.cpp",
        artifact_name: str = "main",
    ):
        self.runner = runner
        self.command_template = command_template
        self.timeout_s = timeout_s
        self.source_name = source_name
        self.artifact_name = artifact_name

    def artifact_path(self, workspace: Path) -> Path:
        return workspace / self.artifact_name

    def build_command(self, source: Path, artifact: Path) -> str:
        return self.command_template.format(
            source=shlex.quote(str(source)),
            output=shlex.quote(str(artifact)),
        )

    def compile(self, job: Job, code: str) -> bool:
        """
        Returns True when an artifact was produced. On failure the job is
        finished with the toolchain diagnostics and success=False.
        """
        ws = job.workspace
        source = ws / self.source_name
        artifact = self.artifact_path(ws)
        source.write_text(code, encoding="utf-8")

        spec = CommandSpec(
            command=self.build_command(source, artifact),
            timeout_s=self.timeout_s,
            cwd=ws,
        )
        res = self.runner.run(spec)
        job.results.append(res)

        if not res.ok:
            log.info("compile_failed", outcome=res.outcome.value, code=res.code,
                     duration_s=round(res.duration_s, 3))
            job.finish(self._failure_output(res), False)
            return False

        if not artifact.is_file():
            log.info("compile_artifact_missing", artifact=str(artifact))
            job.finish(with_heading("Compilation failed:", res.text), False)
            return False

        log.info("compile_ok", duration_s=round(res.duration_s, 3))
        return True

    @staticmethod
    def _failure_output(res: ProcessResult) -> str:
        # plain compiler errors go back untouched
        if res.outcome is Outcome.COMPLETED:
            return res.text
        return with_heading(res.describe(timeout_label="Compilation"), res.text)
