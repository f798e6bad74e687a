"""devreclaim - find and safely remove developer build artifacts and caches.

The package scans directory trees for regenerable artifacts such as
``node_modules`` or Rust ``target`` directories, protects anything inside
repositories with uncommitted work, and moves what is left to the trash.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("devreclaim")
except PackageNotFoundError:
    # Running from a source tree without installed metadata
    __version__ = "0.0.0"

__all__ = ["__version__"]
