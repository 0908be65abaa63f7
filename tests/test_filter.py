"""
Tests for the FilterHost event dispatcher.
"""
import pytest

from filter_rwfrom.engine import RewriteEngine
from filter_rwfrom.filter import FilterHost, Verdict
from filter_rwfrom.rules import Rule, RuleStore


@pytest.fixture
def host():
    rules = RuleStore([
        Rule("mail", "*@old.example", "new-from@new.example", line=1),
        Rule("rcpt", "admin@*", "admin-alias@example.com", line=2),
    ])
    return FilterHost(RewriteEngine(rules))


def _run_message(host, sid, lines):
    return [host.body_line(sid, line) for line in lines]


class TestFilterHost:
    """Tests for a full message through FilterHost."""

    def test_message_is_rewritten(self, host):
        host.message_begin("s1")
        host.envelope_sender("s1", "alice@old.example")
        host.envelope_recipient("s1", "bob@example.com")

        out = _run_message(host, "s1", [
            "From: Alice <alice@old.example>",
            "To: bob@example.com",
            "",
            "From: quoted in body",
        ])

        assert out == [
            "From: new-from@new.example",
            "To: bob@example.com",
            "",
            "From: quoted in body",
        ]
        assert host.message_end("s1") is Verdict.ACCEPT

    def test_events_without_begin_create_transaction(self, host):
        host.envelope_recipient("s2", "admin@example.com")
        assert "s2" in host
        assert host.body_line("s2", "From: x") == "From: admin-alias@example.com"

    def test_message_end_releases_transaction(self, host):
        host.envelope_sender("s1", "alice@old.example")
        host.message_end("s1")

        assert "s1" not in host
        assert host.transaction("s1") is None

    def test_abort_and_close_release_transaction(self, host):
        host.envelope_sender("s1", "alice@old.example")
        host.envelope_sender("s2", "alice@old.example")

        host.message_abort("s1")
        host.connection_close("s2")

        assert len(host) == 0

    def test_release_is_idempotent(self, host):
        host.message_abort("never-seen")
        host.connection_close("never-seen")
        host.message_begin("s1")
        host.message_abort("s1")
        host.message_abort("s1")
        assert len(host) == 0

    def test_release_drops_session_without_touching_transaction(self, host):
        host.envelope_sender("s1", "alice@old.example")
        tx = host.transaction("s1")

        host.message_abort("s1")

        assert "s1" not in host
        assert host.transaction("s1") is None
        assert tx.mail_address == "alice@old.example"

    def test_message_begin_resets_transaction(self, host):
        host.envelope_sender("s1", "alice@old.example")
        host.body_line("s1", "")

        host.message_begin("s1")

        tx = host.transaction("s1")
        assert tx.in_header is True
        assert tx.mail_address is None

    def test_next_message_starts_fresh(self, host):
        host.envelope_sender("s1", "alice@old.example")
        _run_message(host, "s1", ["Subject: one", ""])
        host.message_end("s1")

        host.message_begin("s1")
        host.envelope_sender("s1", "carol@other.example")
        assert host.body_line("s1", "From: carol@other.example") == "From: carol@other.example"

    def test_sessions_are_independent(self, host):
        host.envelope_sender("a", "alice@old.example")
        host.envelope_sender("b", "bob@other.example")
        host.body_line("a", "")

        assert host.body_line("b", "From: bob") == "From: bob"
        assert host.transaction("a").in_header is False
        assert host.transaction("b").in_header is True
        # Interleaved lines keep per-session header state
        assert host.body_line("a", "From: alice") == "From: alice"
