"""Build metadata reported by the health endpoint.

Deployed builds set APP_VERSION and GIT_COMMIT. Local runs fall back to the
checkout's short SHA, or "dev" outside a git checkout.
"""

import os
import subprocess

DEFAULT_APP_VERSION = "1.0.0"


def _git_short_sha() -> str:
    try:
        return subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"],  # noqa: S607
            text=True,
            stderr=subprocess.DEVNULL,
        ).strip()
    except (FileNotFoundError, subprocess.CalledProcessError):
        return "dev"


APP_VERSION: str = os.environ.get("APP_VERSION", DEFAULT_APP_VERSION)
GIT_COMMIT: str = os.environ.get("GIT_COMMIT") or _git_short_sha()


def build_metadata() -> dict[str, str]:
    return {"version": APP_VERSION, "commit": GIT_COMMIT}
