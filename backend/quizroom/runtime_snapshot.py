from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from .runtime_types import AnswerTable, Participant, RoomState
from .schemas.quiz import Question


def serialize_state(state: RoomState) -> dict[str, Any]:
    return {
        "questions": [question.to_payload() for question in state.questions],
        "participants": [
            {"id": participant.id, "name": participant.name}
            for participant in state.participants
        ],
        "currentQuestionIndex": state.current_question_index,
        "isQuizStarted": state.is_quiz_started,
        "isQuizFinished": state.is_quiz_finished,
        "answers": {
            question_id: {
                participant_id: list(answers)
                for participant_id, answers in by_participant.items()
            }
            for question_id, by_participant in state.answers.items()
        },
    }


def parse_state(payload: Any) -> RoomState:
    """Rebuild a ``RoomState`` from a snapshot payload, skipping malformed entries."""
    if not isinstance(payload, dict):
        return RoomState()

    questions: list[Question] = []
    for raw_question in payload.get("questions") or []:
        try:
            questions.append(Question.model_validate(raw_question))
        except ValidationError:
            continue

    participants: list[Participant] = []
    for raw_participant in payload.get("participants") or []:
        if not isinstance(raw_participant, dict):
            continue
        participant_id = raw_participant.get("id")
        if not isinstance(participant_id, str):
            continue
        participants.append(Participant(id=participant_id, name=str(raw_participant.get("name") or "")))

    answers: AnswerTable = {}
    raw_answers = payload.get("answers")
    if isinstance(raw_answers, dict):
        for question_id, by_participant in raw_answers.items():
            if not isinstance(by_participant, dict):
                continue
            answers[str(question_id)] = {
                str(participant_id): [str(item) for item in values]
                for participant_id, values in by_participant.items()
                if isinstance(values, list)
            }

    try:
        current_question_index = int(payload.get("currentQuestionIndex", -1))
    except (TypeError, ValueError):
        current_question_index = -1

    return RoomState(
        questions=tuple(questions),
        participants=tuple(participants),
        current_question_index=current_question_index,
        is_quiz_started=bool(payload.get("isQuizStarted", False)),
        is_quiz_finished=bool(payload.get("isQuizFinished", False)),
        answers=answers,
    )
