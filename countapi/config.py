"""
Process-wide settings for the count API.

Every value can be overridden through an environment variable, read once at import.
"""

import os
from typing import Dict, Final, List, Optional


def _get_timeout() -> Optional[float]:
    """No timeout unless COUNT_API_TIMEOUT is set to a number of seconds."""
    value = os.getenv("COUNT_API_TIMEOUT")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _get_port() -> int:
    try:
        return int(os.getenv("COUNT_API_PORT", "8080"))
    except ValueError:
        return 8080


def _get_framing() -> str:
    value = os.getenv("COUNT_API_BODY_FRAMING", "line").strip().lower()
    return value if value in ("line", "exact") else "line"


HTTP_VERSION: Final[str] = "HTTP/1.1"
HOST: Final[str] = os.getenv("COUNT_API_HOST", "127.0.0.1")  # localhost
PORT: Final[int] = _get_port()
LISTEN_BACKLOG: Final[int] = 5
BODY_FRAMING: Final[str] = _get_framing()
CONNECTION_TIMEOUT: Final[Optional[float]] = _get_timeout()

# Startup hardening, applied once before the first request
SAFE_PATH: Final[str] = "/bin:/usr/bin:/usr/local/bin"
SAFE_UMASK: Final[int] = 0o077
UNSET_VARIABLES: Final[List[str]] = ["CDPATH", "IFS", "TMPDIR"]


def apply_process_defaults(environ: Optional[Dict[str, str]] = None) -> int:
    """
    Restrict file creation permissions, pin the executable search path and drop
    variables that change how child processes resolve paths.

    Returns the umask that was in effect before.
    """
    if environ is None:
        environ = os.environ

    previous_umask = os.umask(SAFE_UMASK)

    current_path = environ.get("PATH", "")
    environ["PATH"] = f"{SAFE_PATH}:{current_path}" if current_path else SAFE_PATH

    for name in UNSET_VARIABLES:
        environ.pop(name, None)

    return previous_umask
