"""Unit tests for participant extraction and display."""

from chatmail.conversations.participants import display_participants, extract_participants
from chatmail.models import Conversation

USER = "me@x.com"


class TestExtractParticipants:
    """Test suite for extract_participants."""

    def test_excludes_user_and_lowercases(self, make_message) -> None:
        messages = [
            make_message("m1", "Bob@Y.com", "Me@X.com", 100),
            make_message("m2", "me@x.com", "bob@y.com", 200),
        ]

        assert extract_participants(messages, USER) == {"bob@y.com"}

    def test_includes_all_recipient_headers(self, make_message) -> None:
        messages = [
            make_message(
                "m1",
                "me@x.com",
                "Bob <bob@y.com>",
                100,
                cc="alice@z.com, me@x.com",
                bcc="dave@w.com",
            )
        ]

        assert extract_participants(messages, USER) == {"bob@y.com", "alice@z.com", "dave@w.com"}

    def test_note_to_self_has_no_participants(self, make_message) -> None:
        messages = [make_message("m1", "me@x.com", "me@x.com", 100)]

        assert extract_participants(messages, USER) == set()

    def test_ignores_entries_without_address(self, make_message) -> None:
        messages = [make_message("m1", "bob@y.com", "undisclosed-recipients:;", 100)]

        assert extract_participants(messages, USER) == {"bob@y.com"}

    def test_empty_input(self) -> None:
        assert extract_participants([], USER) == set()


class TestDisplayParticipants:
    """Test suite for display_participants."""

    def test_individual_uses_counterpart_name(self, make_message) -> None:
        message = make_message("m1", "bob@y.com", "me@x.com", 100, sender="Bob Smith")
        conversation = Conversation(id="bob@y.com", messages=(message,), participants=frozenset({"bob@y.com"}))

        assert display_participants(conversation, USER) == "Bob"

    def test_individual_outgoing_uses_recipient(self, make_message) -> None:
        message = make_message("m1", "me@x.com", "Alice Jones <alice@z.com>", 100)
        conversation = Conversation(id="alice@z.com", messages=(message,), participants=frozenset({"alice@z.com"}))

        assert display_participants(conversation, USER) == "Alice"

    def test_contact_lookup_wins(self, make_message) -> None:
        message = make_message("m1", "bob@y.com", "me@x.com", 100, sender="Bob Smith")
        conversation = Conversation(id="bob@y.com", messages=(message,), participants=frozenset({"bob@y.com"}))

        label = display_participants(conversation, USER, contact_name={"bob@y.com": "Robert"}.get)

        assert label == "Robert"

    def test_note_to_self_is_me(self, make_message) -> None:
        message = make_message("m1", "me@x.com", "me@x.com", 100)
        conversation = Conversation(id="n", messages=(message,))

        assert display_participants(conversation, USER) == "Me"

    def test_group_lists_sorted_first_names(self, make_message) -> None:
        message = make_message("m1", "me@x.com", "Carol King <carol@z.com>, Bob Smith <bob@y.com>", 100)
        conversation = Conversation(
            id="group-1",
            messages=(message,),
            participants=frozenset({"bob@y.com", "carol@z.com"}),
        )

        assert display_participants(conversation, USER) == "Bob, Carol"

    def test_large_group_is_truncated(self, make_message) -> None:
        names = ["ann", "ben", "cat", "dan", "eve", "fay", "gus"]
        to = ", ".join(f"{n}@x.org" for n in names)
        message = make_message("m1", "me@x.com", to, 100)
        conversation = Conversation(
            id="group-2",
            messages=(message,),
            participants=frozenset(f"{n}@x.org" for n in names),
        )

        assert display_participants(conversation, USER) == "ann, ben, cat, dan, eve +2"
