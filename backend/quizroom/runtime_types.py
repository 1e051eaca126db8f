from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from fastapi import WebSocket

from .schemas.quiz import Question

AnswerTable = dict[str, dict[str, list[str]]]


@dataclass(frozen=True)
class Participant:
    id: str
    name: str


@dataclass(frozen=True)
class RoomState:
    """Authoritative quiz state of one room.

    Instances are never mutated in place; every transition builds a new one.
    """

    questions: tuple[Question, ...] = ()
    participants: tuple[Participant, ...] = ()
    current_question_index: int = -1
    is_quiz_started: bool = False
    is_quiz_finished: bool = False
    answers: AnswerTable = field(default_factory=dict)

    @property
    def current_question(self) -> Question | None:
        if not self.is_quiz_started:
            return None
        if 0 <= self.current_question_index < len(self.questions):
            return self.questions[self.current_question_index]
        return None

    def find_participant(self, participant_id: str) -> Participant | None:
        return next((p for p in self.participants if p.id == participant_id), None)


@dataclass
class ClientConnection:
    peer_id: str
    websocket: WebSocket


@dataclass
class RoomRuntime:
    room_id: str
    state: RoomState = field(default_factory=RoomState)
    connections: dict[str, ClientConnection] = field(default_factory=dict)
    host_peer_id: str | None = None
    state_version: int = 1
    created_at_ms: int = 0
    eviction_timer: asyncio.Task[None] | None = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
