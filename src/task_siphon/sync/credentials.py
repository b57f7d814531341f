"""API key resolution for the context service."""

import os
import re
from collections.abc import Mapping
from pathlib import Path

from task_siphon.exceptions import ConfigurationError

API_KEY_ENV_VAR = "ULTRACONTEXT_API_KEY"
DEFAULT_CREDENTIALS_FILE = Path.home() / ".ultracontext" / "config.toml"

_API_KEY_LINE_RE = re.compile(r"""^\s*api_key\s*=\s*["']([^"']+)["']""", re.MULTILINE)


def read_api_key_from_file(path: Path) -> str:
    """Read the first api_key = "..." line from a config file.

    Returns:
        The key, or "" if the file is missing or has no such line
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return ""

    match = _API_KEY_LINE_RE.search(raw)
    return match.group(1).strip() if match else ""


def resolve_api_key(
    explicit: str | None = None,
    env: Mapping[str, str] | None = None,
    credentials_file: Path | None = None,
) -> str:
    """Find the context service API key.

    Sources are consulted in order: the ULTRACONTEXT_API_KEY environment
    variable, the explicit value, then the credentials file.

    Raises:
        ConfigurationError: If no source provides a key
    """
    if env is None:
        env = os.environ
    if credentials_file is None:
        credentials_file = DEFAULT_CREDENTIALS_FILE

    candidates = (
        env.get(API_KEY_ENV_VAR, ""),
        explicit or "",
    )
    for candidate in candidates:
        if candidate.strip():
            return candidate.strip()

    from_file = read_api_key_from_file(credentials_file)
    if from_file:
        return from_file

    raise ConfigurationError(
        f"Missing API key. Set {API_KEY_ENV_VAR}, pass --api-key, or configure {credentials_file}."
    )
