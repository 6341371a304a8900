"""
Server version.

Resolution order:
1. OTA_SERVER_VERSION environment variable (set by release builds)
2. `git describe --tags` of the checkout ("v1.4.0", or "v1.4.0-dev.3+1a2b3c4"
   three commits past the tag)
3. "v0.0.0-dev+unknown"

Note this is the version of the server itself, unrelated to the bundle
versions it distributes.
"""

import os
import re
import subprocess
from functools import lru_cache
from typing import Optional


DEFAULT_VERSION = "v0.0.0-dev+unknown"

_DESCRIBE_PATTERN = re.compile(r'^(.+?)-(\d+)-g([a-f0-9]+)$')


def _git_describe() -> Optional[str]:
    try:
        result = subprocess.run(
            ['git', 'describe', '--tags', '--long'],
            capture_output=True,
            text=True,
            check=True,
            timeout=5,
        )
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError):
        return None

    match = _DESCRIBE_PATTERN.match(result.stdout.strip())
    if not match:
        return None

    tag, commits_since, commit_hash = match.groups()
    if int(commits_since) == 0:
        return tag
    return f"{tag}-dev.{commits_since}+{commit_hash}"


@lru_cache()
def get_version() -> str:
    """Return the server version (cached)."""
    return os.environ.get("OTA_SERVER_VERSION") or _git_describe() or DEFAULT_VERSION


__version__ = get_version()
