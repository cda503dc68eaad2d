"""Full-mailbox sync: list every server thread, fetch details in batches.

The run moves through ``IDLE -> LISTING_THREADS -> FETCHING_BATCHES -> DONE``.
A failure while listing ends the run in ``ERROR`` without touching data that
was already loaded; a failure fetching a single thread only skips that thread.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import structlog

from chatmail.config import Settings
from chatmail.conversations.store import MessageStore
from chatmail.models import Conversation, Message, SyncProgress, SyncReport, SyncState
from chatmail.transport import MailTransport

logger = structlog.get_logger()

ProgressCallback = Callable[[SyncProgress], None]
PublishCallback = Callable[[list[Conversation]], None]


class SyncOrchestrator:
    """Drives a sync run against a ``MailTransport`` into a ``MessageStore``.

    Only one run may be in flight per orchestrator; overlapping calls are
    refused with a report flagged ``rejected``.
    """

    def __init__(self, transport: MailTransport, settings: Settings | None = None) -> None:
        """Initialize the orchestrator.

        Args:
            transport: Client used for listing and fetching threads.
            settings: Application settings. If None, uses default settings.
        """
        from chatmail.config import get_settings

        self.transport = transport
        self.settings = settings or get_settings()
        self.state = SyncState.IDLE
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def run(
        self,
        store: MessageStore,
        on_progress: ProgressCallback | None = None,
        on_publish: PublishCallback | None = None,
    ) -> SyncReport:
        """Run a full sync into ``store``.

        Args:
            store: Store that receives every fetched thread.
            on_progress: Called with a ``SyncProgress`` on every step.
            on_publish: Called with a sorted conversation snapshot after the
                first batch, every ``publish_every_batches`` batches and after
                the last batch.

        Returns:
            SyncReport describing the run.
        """

        if self._running:
            logger.warning("sync_rejected_already_running")
            return SyncReport(state=self.state, rejected=True)

        self._running = True
        try:
            return await self._run(store, on_progress, on_publish)
        finally:
            self._running = False

    async def _run(
        self,
        store: MessageStore,
        on_progress: ProgressCallback | None,
        on_publish: PublishCallback | None,
    ) -> SyncReport:
        self.state = SyncState.IDLE
        self._emit(on_progress, SyncProgress(state=self.state, detail="Starting sync..."))
        logger.info("sync_started")

        try:
            thread_ids = await self._list_all_thread_ids(on_progress)
        except Exception as exc:  # noqa: BLE001
            self.state = SyncState.ERROR
            logger.error("sync_listing_failed", error=str(exc), error_type=type(exc).__name__)
            self._emit(on_progress, SyncProgress(state=self.state, detail=f"Error: {exc}"))
            return SyncReport(state=self.state, error=str(exc))

        if not thread_ids:
            self.state = SyncState.DONE
            self._emit(
                on_progress,
                SyncProgress(state=self.state, fraction=1.0, detail="No messages found"),
            )
            if on_publish is not None:
                on_publish(store.snapshot())
            logger.info("sync_completed", threads_listed=0, conversations=len(store))
            return SyncReport(state=self.state, conversations=len(store))

        fetched, failed = await self._fetch_in_batches(thread_ids, store, on_progress, on_publish)

        self.state = SyncState.DONE
        self._emit(
            on_progress,
            SyncProgress(state=self.state, fraction=1.0, threads_found=len(thread_ids)),
        )
        logger.info(
            "sync_completed",
            threads_listed=len(thread_ids),
            threads_fetched=fetched,
            threads_failed=len(failed),
            conversations=len(store),
        )
        return SyncReport(
            state=self.state,
            threads_listed=len(thread_ids),
            threads_fetched=fetched,
            failed_thread_ids=failed,
            conversations=len(store),
        )

    async def _list_all_thread_ids(self, on_progress: ProgressCallback | None) -> list[str]:
        self.state = SyncState.LISTING_THREADS
        self._emit(on_progress, SyncProgress(state=self.state, detail="Fetching all threads..."))

        thread_ids: list[str] = []
        page_token: str | None = None
        while True:
            ids, page_token = await self.transport.list_thread_ids(
                page_token=page_token,
                max_results=self.settings.list_page_size,
            )
            thread_ids.extend(ids)

            logger.debug("sync_listing_page", page_size=len(ids), total=len(thread_ids))
            self._emit(
                on_progress,
                SyncProgress(
                    state=self.state,
                    detail=f"Fetching threads... ({len(thread_ids)} found)",
                    threads_found=len(thread_ids),
                ),
            )

            if not page_token:
                break
            if self.settings.page_delay_seconds > 0:
                await asyncio.sleep(self.settings.page_delay_seconds)

        return thread_ids

    async def _fetch_in_batches(
        self,
        thread_ids: list[str],
        store: MessageStore,
        on_progress: ProgressCallback | None,
        on_publish: PublishCallback | None,
    ) -> tuple[int, list[str]]:
        self.state = SyncState.FETCHING_BATCHES
        batch_size = max(1, self.settings.fetch_batch_size)
        publish_every = max(1, self.settings.publish_every_batches)
        total = len(thread_ids)
        total_batches = (total + batch_size - 1) // batch_size

        self._emit(
            on_progress,
            SyncProgress(
                state=self.state,
                detail=f"Loading {total} conversations...",
                threads_found=total,
            ),
        )

        fetched = 0
        failed: list[str] = []
        loaded = 0

        for batch_num in range(total_batches):
            start = batch_num * batch_size
            batch = thread_ids[start : start + batch_size]

            tasks = [asyncio.create_task(self._fetch_thread(thread_id)) for thread_id in batch]
            for next_result in asyncio.as_completed(tasks):
                thread_id, messages = await next_result
                if messages is None:
                    failed.append(thread_id)
                    continue
                if store.ingest(thread_id, messages) is not None:
                    fetched += 1

            loaded += len(batch)
            is_last = batch_num == total_batches - 1
            self._emit(
                on_progress,
                SyncProgress(
                    state=self.state,
                    fraction=(batch_num + 1) / total_batches,
                    detail=f"Loading conversations... {loaded}/{total}",
                    threads_found=total,
                ),
            )

            if on_publish is not None and (batch_num % publish_every == 0 or is_last):
                on_publish(store.snapshot())

        return fetched, failed

    async def _fetch_thread(self, thread_id: str) -> tuple[str, list[Message] | None]:
        try:
            return thread_id, await self.transport.get_thread_messages(thread_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("thread_fetch_failed", thread_id=thread_id, error=str(exc))
            return thread_id, None

    @staticmethod
    def _emit(callback: ProgressCallback | None, progress: SyncProgress) -> None:
        if callback is not None:
            callback(progress)
