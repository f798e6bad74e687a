"""Default removal capability: send2trash for trash, shutil for permanent removal."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from send2trash import TrashPermissionError, send2trash

from devreclaim.core.errors import RemovalError, TrashUnavailableError

logger = logging.getLogger(__name__)


class SystemRemover:
    """RemovalCapability acting on the local filesystem."""

    def move_to_recoverable(self, path: Path) -> None:
        """Move a path to the platform trash.

        Raises:
            TrashUnavailableError: If the platform has no usable trash for ``path``
            RemovalError: If the move fails for another reason
        """
        try:
            send2trash(path)
        except TrashPermissionError as exc:
            raise TrashUnavailableError(path, str(exc)) from exc
        except OSError as exc:
            raise RemovalError(path, str(exc)) from exc
        logger.debug("Moved to trash", extra={"path": str(path)})

    def remove_permanently(self, path: Path) -> None:
        """Delete a path and its contents.

        Raises:
            RemovalError: If the path cannot be removed
        """
        try:
            if path.is_symlink() or not path.is_dir():
                path.unlink()
            else:
                shutil.rmtree(path)
        except OSError as exc:
            raise RemovalError(path, str(exc)) from exc
        logger.debug("Removed permanently", extra={"path": str(path)})
