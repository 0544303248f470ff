"""Turn pipeline.

One player action runs through TurnOrchestrator:
  1. Preconditions: latest scene in view, no story in flight, not game over,
     no mandatory dialogue pending (resolve_dialogue covers that case).
  2. Side-conversation transcripts are folded into the action text.
  3. The story generator streams StoryReady, then ImageReady per segment,
     then AllImagesReady.
  4. StoryReady is committed atomically and the caller gets a TurnHandle.
  5. Images and new-character portraits land in the background; the session
     auto-saves once they have all settled.

States: idle, awaiting_story, awaiting_images, mandatory_dialogue, game_over.
"""

from .orchestrator import (  # noqa: F401
    TurnHandle,
    TurnOrchestrator,
    TurnRejectedError,
    TurnState,
)
