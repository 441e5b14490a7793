"""
Upload tracker: the consistency boundary for CV attachments.

One aggregate owns both the per-file UploadRecords and the submission's
cv_urls list, so resolving an upload updates the two together.

Concurrency model:
  - Everything runs on one asyncio event loop.
  - Each transfer is its own task; completions arrive in any order.
  - Every update is a keyed read-modify-write on the current mapping, done
    inside a single callback, so updates to different records never clobber
    each other. Updates for an id that is no longer tracked are dropped,
    which is how a removed record's transfer gets orphaned.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Iterable, Optional, Protocol

from cvintake.config import get_settings
from cvintake.models.upload import SelectedFile, UploadErrorKind, UploadRecord
from cvintake.services.validator import UploadSnapshot

logger = logging.getLogger(__name__)

Listener = Callable[[UploadSnapshot], None]


class BlobStorage(Protocol):
    async def upload(self, data: bytes, path: str, on_progress: Callable[[int], None]) -> str:
        ...


class UploadTracker:
    def __init__(
        self,
        storage: BlobStorage,
        *,
        max_bytes: Optional[int] = None,
        cancel_on_remove: Optional[bool] = None,
        clock: Callable[[], float] = time.time,
    ):
        settings = get_settings()
        self._storage = storage
        self._max_bytes = settings.max_upload_bytes if max_bytes is None else max_bytes
        self._cancel_on_remove = (
            settings.cancel_uploads_on_remove if cancel_on_remove is None else cancel_on_remove
        )
        self._clock = clock

        # dict preserves selection order for display
        self._records: dict[str, UploadRecord] = {}
        self._cv_urls: list[str] = []
        self._tasks: dict[str, asyncio.Task] = {}
        self._listeners: list[Listener] = []
        # orphaned transfers, kept referenced until they finish
        self._detached: set[asyncio.Task] = set()

    # ── Read side ─────────────────────────────────────────────────────────────

    @property
    def records(self) -> list[UploadRecord]:
        return list(self._records.values())

    @property
    def cv_urls(self) -> list[str]:
        return list(self._cv_urls)

    def get(self, record_id: str) -> Optional[UploadRecord]:
        return self._records.get(record_id)

    def snapshot(self) -> UploadSnapshot:
        return UploadSnapshot(records=tuple(self._records.values()), cv_urls=tuple(self._cv_urls))

    def aggregate_progress(self) -> int:
        return self.snapshot().progress

    # ── Subscriptions ─────────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns the matching unsubscribe call."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snap = self.snapshot()
        for listener in list(self._listeners):
            listener(snap)

    # ── Selection ─────────────────────────────────────────────────────────────

    def select(self, files: Iterable[SelectedFile]) -> list[UploadRecord]:
        """
        Track newly selected files and start their transfers.

        Starting transfers needs a running event loop. Files whose name+size is
        already tracked (or repeated within this selection) are dropped.
        Oversized files get a record with a too_large error and no transfer.

        Returns:
            The records created by this call, in selection order.
        """
        stamp = int(self._clock() * 1000)
        seen = {r.key for r in self._records.values()}
        created: list[tuple[UploadRecord, SelectedFile]] = []

        for idx, f in enumerate(files):
            if f.key in seen:
                logger.debug("Dropping duplicate selection %s", f.key)
                continue
            seen.add(f.key)
            record = UploadRecord(id=f"{stamp}_{idx}_{f.name}", name=f.name, size=f.size)
            if f.size > self._max_bytes:
                record = record.model_copy(update={"error": UploadErrorKind.TOO_LARGE})
                logger.info("Rejected %s: %d bytes exceeds %d", f.name, f.size, self._max_bytes)
            self._records[record.id] = record
            created.append((record, f))

        if not created:
            return []

        to_start = [(record, f) for record, f in created if record.error is None]
        if to_start:
            loop = asyncio.get_running_loop()
            for record, f in to_start:
                destination = f"cvs/{record.id}"
                self._tasks[record.id] = loop.create_task(self._transfer(record.id, f, destination))

        self._notify()
        return [record for record, _ in created]

    async def _transfer(self, record_id: str, f: SelectedFile, destination: str) -> None:
        def on_progress(percent: int) -> None:
            self._set_progress(record_id, percent)

        try:
            url = await self._storage.upload(f.data, destination, on_progress)
        except asyncio.CancelledError:
            logger.info("Upload of %s cancelled", f.name)
            raise
        except Exception as e:
            # StorageError per contract; anything else is treated the same way
            logger.error("Upload failed for %s: %s", f.name, e)
            self.fail_upload(record_id, UploadErrorKind.UPLOAD_FAILED)
        else:
            self.resolve_upload(record_id, url)
        finally:
            self._tasks.pop(record_id, None)
            self._detached.discard(asyncio.current_task())

    # ── Keyed updates ─────────────────────────────────────────────────────────

    def _update(self, record_id: str, **changes) -> Optional[UploadRecord]:
        current = self._records.get(record_id)
        if current is None:
            return None
        updated = current.model_copy(update=changes)
        self._records[record_id] = updated
        return updated

    def _set_progress(self, record_id: str, percent: int) -> None:
        current = self._records.get(record_id)
        if current is None or current.error is not None or current.url is not None:
            return
        # 100 is reserved for "resolved with a URL"; never move backwards
        percent = max(current.progress, min(int(percent), 99))
        if percent == current.progress:
            return
        self._update(record_id, progress=percent)
        self._notify()

    def resolve_upload(self, record_id: str, url: str) -> None:
        """Mark a record done and append its URL to cv_urls in one step."""
        current = self._records.get(record_id)
        if current is None:
            logger.info("Ignoring completion for untracked upload %s", record_id)
            return
        if current.error is not None:
            return
        self._update(record_id, progress=100, url=url)
        self._cv_urls.append(url)
        self._notify()

    def fail_upload(self, record_id: str, kind: UploadErrorKind = UploadErrorKind.UPLOAD_FAILED) -> None:
        current = self._records.get(record_id)
        if current is None or current.done:
            return
        self._update(record_id, error=kind, url=None)
        self._notify()

    # ── Removal / restore ─────────────────────────────────────────────────────

    def remove_upload(self, record_id: str) -> None:
        """
        Stop tracking a record and drop its URL from cv_urls.

        The transfer itself is detached, not cancelled, unless the tracker
        was built with cancel_on_remove.
        """
        record = self._records.pop(record_id, None)
        if record is None:
            return
        if record.url and record.url in self._cv_urls:
            self._cv_urls.remove(record.url)
        task = self._tasks.pop(record_id, None)
        if task is not None:
            if self._cancel_on_remove:
                task.cancel()
            else:
                self._detached.add(task)
        self._notify()

    def clear(self) -> None:
        """Drop every record and URL."""
        for record_id in list(self._records):
            self.remove_upload(record_id)
        self._cv_urls = []
        self._notify()

    def restore(self, records: Iterable[UploadRecord], cv_urls: Iterable[str] = ()) -> None:
        """Seed from a draft. Restored records have no file and never resume."""
        for record in records:
            self._records[record.id] = record.model_copy(update={"restored": True})
        for url in cv_urls:
            if url not in self._cv_urls:
                self._cv_urls.append(url)
        self._notify()

    async def join(self) -> None:
        """Wait for every running transfer to settle."""
        tasks = [*self._tasks.values(), *self._detached]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
