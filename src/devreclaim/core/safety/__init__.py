"""Safety checks deciding which candidates may be deleted."""

from devreclaim.core.safety.git_status import GitStatusReader
from devreclaim.core.safety.guard import SafetyGuard, default_deny_paths, interpreter_prefixes

__all__ = [
    "GitStatusReader",
    "SafetyGuard",
    "default_deny_paths",
    "interpreter_prefixes",
]
