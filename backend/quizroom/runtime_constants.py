from __future__ import annotations

ROOM_CODE_CHARS = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6
MAX_ROOM_ID_LENGTH = 8
MAX_CONNECTION_ID_LENGTH = 64
MAX_NAME_LENGTH = 64

CHOICE_QUESTION_TYPES = frozenset({"single-choice", "multi-choice"})

HOST_ONLY_ACTION_TYPES = frozenset(
    {
        "addQuestion",
        "removeQuestion",
        "updateQuestion",
        "startQuiz",
        "nextQuestion",
        "finishQuiz",
        "resetQuiz",
    }
)

# Close code used when a newer socket takes over the same connection id.
HANDOFF_CLOSE_CODE = 4002
POLICY_VIOLATION_CLOSE_CODE = 1008
# Sent to a peer that stopped reading and let a send time out.
SEND_TIMEOUT_CLOSE_CODE = 1013

ANONYMOUS_PARTICIPANT_NAME = "Anonymous"

QUESTION_TYPE_LABELS = {
    "single-choice": "Single choice",
    "multi-choice": "Multiple choice",
    "text-input": "Free text",
}
