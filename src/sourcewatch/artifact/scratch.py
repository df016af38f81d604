"""Per-reconciliation scratch directories."""

import contextlib
import shutil
import tempfile
from collections.abc import Generator
from pathlib import Path

from sourcewatch.observability._logging import get_logger


log = get_logger(__name__)


@contextlib.contextmanager
def scratch_area(prefix: str) -> Generator[Path, None, None]:
    """Create a private temporary directory and always remove it on exit.

    Removal happens on success, on error and on cancellation. A failure to
    remove is logged and does not replace the outcome of the block.
    """
    path = Path(tempfile.mkdtemp(prefix=f"{prefix}-"))
    log.debug("scratch_area_created", path=str(path))
    try:
        yield path
    finally:

        def _on_error(_func: object, failed: str, exc: BaseException) -> None:
            log.error("scratch_area_remove_failed", path=failed, error=str(exc))

        shutil.rmtree(path, onexc=_on_error)
        log.debug("scratch_area_removed", path=str(path))
