from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ---- http (bind) ----
    host: str = "0.0.0.0"
    port: int = 8081

    # ---- process runner ----
    shell: str = "/bin/sh"
    max_output_bytes: int = 1024 * 1024  # 0 = no cap

    # ---- toolchain / deadlines ----
    compile_command: str = "g++ -std=c++17 -O2 -Wall -Wextra -o {output} {source}"
    # must be > 0: there is no "no deadline" setting
    compile_timeout_s: float = Field(30, gt=0)
    run_timeout_s: float = Field(10, gt=0)

    # ---- workspaces ----
    workspace_root: Optional[Path] = None  # None -> system temp dir
    workspace_prefix: str = "cpp_exec_"
    source_name: str = "main.cpp"
    artifact_name: str = "main"
    input_name: str = "input.txt"

    # ---- request validation ----
    max_code_length: int = 100_000
    max_input_length: int = 10_000

    # ---- http surface ----
    cors_origins: List[str] = ["*"]

    # ---- logging ----
    log_level: str = "INFO"
    log_json: bool = True

    # env prefix CPPX_*
    model_config = SettingsConfigDict(env_prefix="CPPX_", extra="ignore")


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        return {}
    except yaml.YAMLError:
        # broken config file must not keep the service from starting
        return {}
    return data if isinstance(data, dict) else {}


def load_settings() -> Settings:
    # 0) base from env CPPX_*
    s = Settings()

    # 1) conf/executor.yaml (or CPPX_CONF)
    data = _read_yaml(Path(os.environ.get("CPPX_CONF", "conf/executor.yaml")))
    if not data:
        return s

    # 2) env wins over the file: only keys without an explicit CPPX_* override are taken
    fields = Settings.model_fields
    update = {
        key: value
        for key, value in data.items()
        if key in fields and f"CPPX_{key.upper()}" not in os.environ
    }
    # re-validate so YAML strings/ints land as Path/float/bool
    return Settings.model_validate({**s.model_dump(), **update})


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
