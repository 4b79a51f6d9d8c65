from __future__ import annotations
import random, string, time


def new_job_id() -> str:
    suf = "".join(random.choice(string.hexdigits.lower()) for _ in range(6))
    return f"{int(time.time())}-{suf}"


def decode_output(data: bytes, truncated: bool = False) -> str:
    text = data.decode("utf-8", errors="replace")
    if truncated:
        if text and not text.endswith("\n"):
            text += "\n"
        text += f"[output truncated after {len(data)} bytes]\n"
    return text


def with_heading(heading: str, body: str) -> str:
    return f"{heading}\n{body}"
