"""Content file watching for catalog hot reload.

Monitors the content file and swaps a freshly loaded catalog into the
holder on change. Requests read the holder once, so each request sees a
single consistent catalog.
"""

import asyncio
import logging
from pathlib import Path

from watchfiles import Change, awatch

from cmsstage.core.loader import CatalogLoader
from cmsstage.core.pipeline import CatalogHolder

logger = logging.getLogger(__name__)


class CatalogWatcher:
    """Reloads the catalog when the content file changes."""

    def __init__(self, loader: CatalogLoader, holder: CatalogHolder) -> None:
        """Initialize the watcher.

        Args:
            loader: Loader for the watched content file
            holder: Holder receiving reloaded catalogs
        """
        self._loader = loader
        self._holder = holder
        self._watch_task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        """Start the file watcher."""
        if self._watch_task is not None:
            return
        self._watch_task = asyncio.create_task(self._watch_files())

    async def stop(self) -> None:
        """Stop the file watcher."""
        if self._watch_task is not None:
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
            self._watch_task = None

    def reload(self) -> bool:
        """Reload the catalog now.

        A content error keeps the previous catalog in place.

        Returns:
            True if a new catalog was installed
        """
        try:
            catalog = self._loader.load()
        except (OSError, ValueError) as e:
            logger.error(f"Keeping previous catalog, reload of {self._loader.content_file} failed: {e}")
            return False
        self._holder.swap(catalog)
        return True

    async def _watch_files(self) -> None:
        """Watch the content file directory and reload on relevant changes."""
        content_file = self._loader.content_file.resolve()
        async for changes in awatch(content_file.parent):
            if not any(_is_content_change(change, path, content_file) for change, path in changes):
                continue
            logger.info(f"Content file changed, reloading {content_file}")
            await asyncio.to_thread(self.reload)


def _is_content_change(change: Change, path: str, content_file: Path) -> bool:
    return change != Change.deleted and Path(path).resolve() == content_file
