"""Environment-variable configuration for tarstream.

Every ``TARSTREAM_*`` variable is read once at import time.  Functions
that honour a setting also accept it as a keyword argument, which takes
precedence over the environment.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = (
    "DEFAULT_CLAMP_TIMESTAMPS",
    "DEFAULT_MAX_PATH_LENGTH",
    "DEFAULT_STRICT_FORMAT",
    "DEFAULT_STRIP_SPECIAL_BITS",
)

import os

# ---- environment-variable configuration helpers ----------------------------
# Each helper reads the relevant TARSTREAM_* variable and returns its typed
# value, falling back to *fallback* on absence or parse failure.


def _env_int(name: str, fallback: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return fallback
    try:
        return int(raw)
    except ValueError:
        return fallback


def _env_bool(name: str, fallback: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return fallback
    return raw.lower() not in ("0", "false", "no", "off", "")


# Module-level singletons evaluated once at import time.
DEFAULT_STRICT_FORMAT: bool = _env_bool("TARSTREAM_STRICT_FORMAT", False)
DEFAULT_MAX_PATH_LENGTH: int = _env_int("TARSTREAM_MAX_PATH_LENGTH", 4096)
DEFAULT_STRIP_SPECIAL_BITS: bool = _env_bool("TARSTREAM_STRIP_SPECIAL_BITS", True)
DEFAULT_CLAMP_TIMESTAMPS: bool = _env_bool("TARSTREAM_CLAMP_TIMESTAMPS", True)
