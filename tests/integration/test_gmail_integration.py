"""Integration tests against a real Gmail account.

These tests need OAuth credentials for a disposable test account and are
skipped unless CHATMAIL_INTEGRATION_CREDENTIALS points at them.
"""

import os
from pathlib import Path

import pytest

from chatmail.config import Settings
from chatmail.gmail.client import GmailClient
from chatmail.mailbox import Mailbox
from chatmail.models import SyncState

CREDENTIALS = os.environ.get("CHATMAIL_INTEGRATION_CREDENTIALS")

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not CREDENTIALS, reason="CHATMAIL_INTEGRATION_CREDENTIALS is not set"),
]


@pytest.fixture
def live_settings() -> Settings:
    assert CREDENTIALS is not None
    credentials = Path(CREDENTIALS)
    return Settings(
        gmail_credentials_path=credentials,
        gmail_token_path=credentials.with_name("token.json"),
        page_delay_seconds=0.05,
    )


class TestGmailIntegration:
    """Integration tests for Gmail API."""

    @pytest.mark.asyncio
    async def test_gmail_authentication_flow(self, live_settings) -> None:
        """Test the full Gmail OAuth2 authentication flow."""
        client = GmailClient(live_settings)

        await client.authenticate()

        assert "@" in client.user_email

    @pytest.mark.asyncio
    async def test_full_sync(self, live_settings) -> None:
        """Test syncing every thread of the test account."""
        client = GmailClient(live_settings)
        await client.authenticate()
        mailbox = Mailbox(client, client.user_email, live_settings)

        report = await mailbox.load_messages()

        assert report.state is SyncState.DONE
        assert len(mailbox.threads) == report.conversations
