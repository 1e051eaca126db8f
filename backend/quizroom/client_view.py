from __future__ import annotations

import json
import logging
from typing import Any

from .runtime_results import score_participant
from .runtime_snapshot import parse_state
from .runtime_types import RoomState
from .runtime_utils import generate_question_id
from .schemas.quiz import Question, QuestionType

logger = logging.getLogger(__name__)


class ClientView:
    """Per-client view derived from the latest snapshot plus locally known identity.

    The server is authoritative; this object never changes ``state`` on its own
    except for ``leave_room`` which drops everything the server sent.
    """

    def __init__(self, room_id: str | None = None) -> None:
        self.room_id = room_id
        self.is_host = False
        self.participant_name: str | None = None
        self.participant_id: str | None = None
        self.state = RoomState()
        self.last_error: str | None = None
        self.host_disconnected = False
        self.has_snapshot = False

    def create_room(self, room_id: str, name: str = "Host") -> dict[str, Any]:
        self._reset(room_id)
        self.is_host = True
        return identify_message(name, is_host=True)

    def join_room(self, room_id: str, name: str) -> dict[str, Any]:
        self._reset(room_id)
        self.participant_name = name
        return identify_message(name, is_host=False)

    def leave_room(self) -> None:
        self._reset(None)

    def _reset(self, room_id: str | None) -> None:
        self.room_id = room_id
        self.is_host = False
        self.participant_name = None
        self.participant_id = None
        self.state = RoomState()
        self.last_error = None
        self.host_disconnected = False
        self.has_snapshot = False

    def receive(self, raw: str | dict[str, Any]) -> None:
        if isinstance(raw, str):
            try:
                message = json.loads(raw)
            except ValueError:
                logger.warning("Ignoring undecodable server message")
                return
        else:
            message = raw
        if not isinstance(message, dict):
            return

        message_type = message.get("type")
        if message_type == "sync":
            self.state = parse_state(message.get("state"))
            self.has_snapshot = True
            self._resolve_participant_id()
        elif message_type == "identified":
            participant_id = message.get("participantId")
            if isinstance(participant_id, str) and participant_id:
                self.participant_id = participant_id
            self.is_host = message.get("isHost") is True
            if self.is_host:
                self.host_disconnected = False
        elif message_type == "error":
            self.last_error = str(message.get("message") or "")
        elif message_type == "hostDisconnected":
            self.host_disconnected = True
        else:
            logger.debug("Ignoring unknown server message type %r", message_type)

    def _resolve_participant_id(self) -> None:
        # Fallback for servers that do not echo the id: first name match wins,
        # so two participants sharing a name can resolve to the wrong entry.
        if self.participant_id is not None or self.is_host or not self.participant_name:
            return
        for participant in self.state.participants:
            if participant.name == self.participant_name:
                self.participant_id = participant.id
                return

    @property
    def current_question(self) -> Question | None:
        return self.state.current_question

    @property
    def has_answered_current_question(self) -> bool:
        question = self.current_question
        if question is None or self.participant_id is None:
            return False
        return self.participant_id in self.state.answers.get(question.id, {})

    def score(self) -> dict[str, int] | None:
        if self.participant_id is None:
            return None
        return score_participant(self.state, self.participant_id)


def identify_message(name: str, *, is_host: bool) -> dict[str, Any]:
    return {"type": "identify", "name": name, "isHost": is_host}


def add_question_message(question: Question) -> dict[str, Any]:
    return {"type": "addQuestion", "question": question.to_payload()}


def update_question_message(question: Question) -> dict[str, Any]:
    return {"type": "updateQuestion", "question": question.to_payload()}


def remove_question_message(question_id: str) -> dict[str, Any]:
    return {"type": "removeQuestion", "questionId": question_id}


def control_message(action_type: str) -> dict[str, Any]:
    if action_type not in {"startQuiz", "nextQuestion", "finishQuiz", "resetQuiz"}:
        raise ValueError(f"Not a control action: {action_type}")
    return {"type": action_type}


def submit_answer_message(question_id: str, answers: list[str]) -> dict[str, Any]:
    return {"type": "submitAnswer", "answer": {"questionId": question_id, "answers": list(answers)}}


def build_question(
    text: str,
    question_type: QuestionType,
    options: list[str] | None = None,
    correct_answers: list[str] | None = None,
) -> Question:
    """Create a host-side question with a fresh id; raises ``ValueError`` on invalid shape."""
    return Question(
        id=generate_question_id(),
        text=text,
        type=question_type,
        options=options,
        graded=bool(correct_answers) or None,
        correctAnswers=correct_answers or None,
    )
