"""Tests for taleweaver.conversations."""

from taleweaver.conversations import (
    ConversationLog,
    fold_into_action,
    summarize_conversations,
    summarize_dialogue,
)
from taleweaver.models import ChatMessage, DialogueConfig


def _msg(sender: str, text: str) -> ChatMessage:
    return ChatMessage(sender=sender, text=text)


class TestConversationLog:
    def test_record_replaces(self) -> None:
        log = ConversationLog()
        log.record("Mira", [_msg("player", "Hi")])
        log.record("Mira", [_msg("player", "Hi"), _msg("character", "Hello")])
        assert len(log.get("Mira")) == 2

    def test_empty_record_removes(self) -> None:
        log = ConversationLog({"Mira": [_msg("player", "Hi")]})
        log.record("Mira", [])
        assert log.is_empty

    def test_append_and_clear(self) -> None:
        log = ConversationLog()
        log.append("Tom", _msg("player", "Ale, please"))
        assert not log.is_empty
        log.clear()
        assert log.as_dict() == {}


class TestSummaries:
    def test_summary_names_role(self) -> None:
        logs = {"Mira": [_msg("player", "Where is the tower?"), _msg("character", "North.")]}
        configs = [DialogueConfig(character_name="Mira", character_role="herbalist")]
        assert summarize_conversations(logs, configs) == (
            "[The player talked with Mira (herbalist)]\n"
            "Player: Where is the tower?\n"
            "Mira: North.\n"
            "[End of conversation]"
        )

    def test_fold_prepends_summary(self) -> None:
        logs = {"Tom": [_msg("player", "Hello")]}
        folded = fold_into_action("Go north", logs)
        assert folded.startswith("[The player talked with Tom]")
        assert folded.endswith("\n\nGo north")

    def test_fold_without_logs_is_action(self) -> None:
        assert fold_into_action("Go north", {}) == "Go north"

    def test_dialogue_skips_opening_line(self) -> None:
        config = DialogueConfig(
            character_name="Guard", character_role="gatekeeper",
            initial_dialogue="Halt! Who goes there?",
        )
        messages = [
            _msg("character", "Halt! Who goes there?"),
            _msg("player", "A friend."),
            _msg("character", "Pass, friend."),
        ]
        summary = summarize_dialogue(config, messages)
        assert summary.startswith("[The player discussed directly with Guard (gatekeeper)]")
        assert 'Guard opened the conversation: "Halt! Who goes there?"' in summary
        assert "Discussion:\nPlayer: A friend.\nGuard: Pass, friend." in summary
        assert summary.count("Halt!") == 1
