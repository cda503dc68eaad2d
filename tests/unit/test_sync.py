"""Unit tests for the sync orchestrator."""

import asyncio
from unittest.mock import MagicMock

import pytest

from chatmail.conversations.store import MessageStore
from chatmail.conversations.sync import SyncOrchestrator
from chatmail.exceptions import GmailAPIError
from chatmail.gmail.client import GmailClient
from chatmail.models import SyncProgress, SyncState

USER = "me@x.com"


class TestSyncOrchestrator:
    """Test suite for SyncOrchestrator."""

    @pytest.mark.asyncio
    async def test_lists_every_page_and_fetches_every_thread(self, test_settings, seeded_transport) -> None:
        transport = seeded_transport(250)
        store = MessageStore(USER)

        report = await SyncOrchestrator(transport, test_settings).run(store)

        assert report.state is SyncState.DONE
        assert transport.list_calls == [None, "1", "2"]
        assert report.threads_listed == 250
        assert report.threads_fetched == 250
        assert report.failed_thread_ids == []
        assert len(store) == 250

    @pytest.mark.asyncio
    async def test_progress_moves_through_states(self, test_settings, seeded_transport) -> None:
        transport = seeded_transport(25)
        updates: list[SyncProgress] = []

        await SyncOrchestrator(transport, test_settings).run(MessageStore(USER), on_progress=updates.append)

        states = [u.state for u in updates]
        assert states[0] is SyncState.IDLE
        assert SyncState.LISTING_THREADS in states
        assert states[-1] is SyncState.DONE
        assert states.index(SyncState.LISTING_THREADS) < states.index(SyncState.FETCHING_BATCHES)

        fractions = [u.fraction for u in updates if u.state is SyncState.FETCHING_BATCHES]
        assert fractions == pytest.approx([0.0, 1 / 3, 2 / 3, 1.0])
        assert updates[-1].fraction == 1.0

    @pytest.mark.asyncio
    async def test_batches_bound_concurrency(self, test_settings, seeded_transport) -> None:
        transport = seeded_transport(35)

        await SyncOrchestrator(transport, test_settings).run(MessageStore(USER))

        assert 1 < transport.max_in_flight <= test_settings.fetch_batch_size

    @pytest.mark.asyncio
    async def test_failed_thread_is_skipped(self, test_settings, seeded_transport) -> None:
        transport = seeded_transport(5)
        transport.failing_threads = {"T2"}
        store = MessageStore(USER)

        report = await SyncOrchestrator(transport, test_settings).run(store)

        assert report.state is SyncState.DONE
        assert report.failed_thread_ids == ["T2"]
        assert report.threads_fetched == 4
        assert "user2@y.com" not in store
        assert "user3@y.com" in store

    @pytest.mark.asyncio
    async def test_listing_error_ends_in_error_state(self, test_settings, seeded_transport) -> None:
        transport = seeded_transport(5)
        transport.list_error = GmailAPIError("quota exceeded")
        updates: list[SyncProgress] = []
        orchestrator = SyncOrchestrator(transport, test_settings)

        report = await orchestrator.run(MessageStore(USER), on_progress=updates.append)

        assert report.state is SyncState.ERROR
        assert report.error == "quota exceeded"
        assert orchestrator.state is SyncState.ERROR
        assert updates[-1].detail == "Error: quota exceeded"

    @pytest.mark.asyncio
    async def test_transport_os_error_ends_in_error_state(self, test_settings, seeded_transport) -> None:
        transport = seeded_transport(3)
        transport.list_error = OSError("network down")
        orchestrator = SyncOrchestrator(transport, test_settings)

        report = await orchestrator.run(MessageStore(USER))

        assert report.state is SyncState.ERROR
        assert report.error == "network down"
        assert orchestrator.state is SyncState.ERROR

    @pytest.mark.asyncio
    async def test_malformed_gmail_listing_ends_in_error_state(self, test_settings) -> None:
        service = MagicMock()
        users = service.users.return_value
        users.getProfile.return_value.execute.return_value = {"emailAddress": USER}
        users.threads.return_value.list.return_value.execute.return_value = {"threads": ["not-an-object"]}
        orchestrator = SyncOrchestrator(GmailClient(test_settings, service=service), test_settings)

        report = await orchestrator.run(MessageStore(USER))

        assert report.state is SyncState.ERROR
        assert report.error is not None

    @pytest.mark.asyncio
    async def test_empty_mailbox_finishes_done(self, test_settings, seeded_transport) -> None:
        transport = seeded_transport(0)
        updates: list[SyncProgress] = []
        published: list[list] = []

        report = await SyncOrchestrator(transport, test_settings).run(
            MessageStore(USER),
            on_progress=updates.append,
            on_publish=published.append,
        )

        assert report.state is SyncState.DONE
        assert updates[-1].detail == "No messages found"
        assert published == [[]]

    @pytest.mark.asyncio
    async def test_publish_is_throttled(self, test_settings, seeded_transport) -> None:
        transport = seeded_transport(25)
        published: list[list] = []

        await SyncOrchestrator(transport, test_settings).run(MessageStore(USER), on_publish=published.append)

        # First batch and last batch out of three.
        assert [len(snapshot) for snapshot in published] == [10, 25]

    @pytest.mark.asyncio
    async def test_publish_every_batch(self, test_settings, seeded_transport) -> None:
        transport = seeded_transport(25)
        settings = test_settings.model_copy(update={"publish_every_batches": 1})
        published: list[list] = []

        await SyncOrchestrator(transport, settings).run(MessageStore(USER), on_publish=published.append)

        assert [len(snapshot) for snapshot in published] == [10, 20, 25]

    @pytest.mark.asyncio
    async def test_overlapping_run_is_rejected(self, test_settings, seeded_transport) -> None:
        transport = seeded_transport(30)
        orchestrator = SyncOrchestrator(transport, test_settings)

        first, second = await asyncio.gather(
            orchestrator.run(MessageStore(USER)),
            orchestrator.run(MessageStore(USER)),
        )

        assert first.state is SyncState.DONE
        assert second.rejected is True
        assert orchestrator.is_running is False

    @pytest.mark.asyncio
    async def test_threads_of_same_counterpart_merge(self, test_settings, fake_transport, make_message) -> None:
        transport = fake_transport
        transport.pages = [["T1", "T2"]]
        transport.threads = {
            "T1": [make_message("m1", "bob@y.com", USER, 100, thread_id="T1")],
            "T2": [make_message("m2", USER, "bob@y.com", 200, thread_id="T2")],
        }
        store = MessageStore(USER)

        report = await SyncOrchestrator(transport, test_settings).run(store)

        assert report.conversations == 1
        conversation = store.get("bob@y.com")
        assert conversation is not None
        assert conversation.message_ids == ["m1", "m2"]
