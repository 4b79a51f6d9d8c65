from __future__ import annotations
import shlex

import structlog

from ..core.models import CommandSpec, Job
from ..core.utils import with_heading
from ..runner.process_runner import ProcessRunner

log = structlog.get_logger(__name__)


class ExecutionPipeline:
    def __init__(
        self,
        runner: ProcessRunner,
        timeout_s: float = 10,
        artifact_name: str = "main",
        input_name: str = "input.txt",
    ):
        self.runner = runner
        self.timeout_s = timeout_s
        self.artifact_name = artifact_name
        self.input_name = input_name

    def command(self) -> str:
        # exec: the shell is replaced, so a crash shows up as the artifact's own signal
        return f"exec ./{shlex.quote(self.artifact_name)}"

    def run(self, job: Job, stdin_text: str = "") -> Job:
        """Run the compiled artifact inside the job workspace and finish the job."""
        ws = job.workspace
        if stdin_text:
            input_path = ws / self.input_name
            input_path.write_bytes(stdin_text.encode("utf-8"))
            with open(input_path, "rb") as stdin:
                res = self.runner.run(CommandSpec(self.command(), self.timeout_s, stdin=stdin, cwd=ws))
        else:
            res = self.runner.run(CommandSpec(self.command(), self.timeout_s, cwd=ws))
        job.results.append(res)

        log.info("run_finished", outcome=res.outcome.value, code=res.code,
                 duration_s=round(res.duration_s, 3), truncated=res.truncated)
        if res.ok:
            return job.finish(res.text, True)
        return job.finish(with_heading(res.describe(timeout_label="Execution"), res.text), False)
