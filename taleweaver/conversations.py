"""Side-conversation transcripts for the current scene.

Optional talks with NPCs do not block the story. Their transcripts are
collected per character while the scene is current and folded into the
next action text, so they steer the next beat without an extra generator
call. The log is cleared whenever a new scene is committed.

A mandatory dialogue is summarised the same way but replaces the action.
"""

from __future__ import annotations

from taleweaver.models import ChatMessage, DialogueConfig


class ConversationLog:
    def __init__(self, logs: dict[str, list[ChatMessage]] | None = None) -> None:
        self._logs: dict[str, list[ChatMessage]] = {
            name: list(messages) for name, messages in (logs or {}).items() if messages
        }

    @property
    def is_empty(self) -> bool:
        return not self._logs

    def record(self, name: str, messages: list[ChatMessage]) -> None:
        """Replace a character's transcript (re-opening a chat resumes it)."""
        if messages:
            self._logs[name] = list(messages)
        else:
            self._logs.pop(name, None)

    def append(self, name: str, message: ChatMessage) -> None:
        self._logs.setdefault(name, []).append(message)

    def get(self, name: str) -> list[ChatMessage]:
        return list(self._logs.get(name, []))

    def clear(self) -> None:
        self._logs.clear()

    def as_dict(self) -> dict[str, list[ChatMessage]]:
        return {name: list(messages) for name, messages in self._logs.items()}


def _transcript(name: str, messages: list[ChatMessage]) -> str:
    return "\n".join(
        f"{'Player' if m.sender == 'player' else name}: {m.text}" for m in messages
    )


def summarize_conversations(
    logs: dict[str, list[ChatMessage]], configs: list[DialogueConfig] | None = None
) -> str:
    """Summary of every optional side conversation held during the scene."""
    roles = {c.character_name: c.character_role for c in configs or []}
    blocks = []
    for name, messages in logs.items():
        if not messages:
            continue
        who = f"{name} ({roles[name]})" if roles.get(name) else name
        blocks.append(
            f"[The player talked with {who}]\n"
            f"{_transcript(name, messages)}\n"
            "[End of conversation]"
        )
    return "\n\n".join(blocks)


def fold_into_action(
    action: str,
    logs: dict[str, list[ChatMessage]],
    configs: list[DialogueConfig] | None = None,
) -> str:
    summary = summarize_conversations(logs, configs)
    if not summary:
        return action
    return f"{summary}\n\n{action}"


def summarize_dialogue(config: DialogueConfig, messages: list[ChatMessage]) -> str:
    """Action text for a finished mandatory dialogue.

    messages[0] is the pre-populated opening line, already quoted from
    config.initial_dialogue, so it is skipped.
    """
    name = config.character_name
    who = f"{name} ({config.character_role})" if config.character_role else name
    return (
        f"[The player discussed directly with {who}]\n"
        f'{name} opened the conversation: "{config.initial_dialogue}"\n\n'
        f"Discussion:\n{_transcript(name, messages[1:])}\n\n"
        "[Discussion over. Continue the story from the outcome and decisions above]"
    )
