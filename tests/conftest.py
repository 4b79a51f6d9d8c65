import pytest

from cpp_executor.settings import Settings

# "compiles" a shell script: syntax check, then copy it into place as the artifact
SCRIPT_COMPILER = "sh -n {source} && cp {source} {output} && chmod +x {output}"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        workspace_root=tmp_path / "ws",
        compile_command=SCRIPT_COMPILER,
        compile_timeout_s=10,
        run_timeout_s=2,
        log_json=False,
    )
