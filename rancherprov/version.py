"""Version information for the provisioning tools server."""

from __future__ import annotations

# Both values may be replaced by the build process.
VERSION = "dev"
GIT_COMMIT = ""


def get_version() -> str:
    """Return the version, followed by the git commit in parentheses when known."""
    if GIT_COMMIT:
        return f"{VERSION} ({GIT_COMMIT})"
    return VERSION