from __future__ import annotations

import csv
import io
import json
from datetime import date, datetime, timezone
from typing import Any, Literal

from .runtime_constants import ANONYMOUS_PARTICIPANT_NAME, QUESTION_TYPE_LABELS
from .runtime_types import RoomState
from .runtime_utils import answers_match, iso_now

ExportFormat = Literal["json", "csv", "text"]

EXPORT_MEDIA_TYPES: dict[str, str] = {
    "json": "application/json",
    "csv": "text/csv; charset=utf-8",
    "text": "text/plain; charset=utf-8",
}
EXPORT_EXTENSIONS: dict[str, str] = {"json": "json", "csv": "csv", "text": "txt"}

REPORT_WIDTH = 70


def score_participant(state: RoomState, participant_id: str) -> dict[str, int]:
    correct = 0
    wrong = 0
    for question in state.questions:
        given = state.answers.get(question.id, {}).get(participant_id)
        if given is None or not question.is_graded:
            continue
        if answers_match(given, question.correctAnswers or []):
            correct += 1
        else:
            wrong += 1
    return {"correct": correct, "wrong": wrong}


def build_export_data(state: RoomState, *, generated_at: str | None = None) -> dict[str, Any]:
    """Summarize a room snapshot into per-question and per-participant results."""
    total_participants = len(state.participants)
    names = {participant.id: participant.name for participant in state.participants}
    has_graded = any(question.is_graded for question in state.questions)

    questions: list[dict[str, Any]] = []
    for question in state.questions:
        submissions = state.answers.get(question.id, {})
        responses = [
            {
                "participantName": names.get(participant_id) or ANONYMOUS_PARTICIPANT_NAME,
                "participantId": participant_id,
                "answers": list(answers),
            }
            for participant_id, answers in submissions.items()
        ]
        statistics: dict[str, Any] = {
            "totalResponses": len(responses),
            "responseRate": (len(responses) / total_participants * 100) if total_participants else 0.0,
        }
        if question.is_choice and question.options:
            option_counts = {option: 0 for option in question.options}
            for response in responses:
                for answer in response["answers"]:
                    if answer in option_counts:
                        option_counts[answer] += 1
            statistics["optionCounts"] = option_counts

        entry: dict[str, Any] = {
            "id": question.id,
            "text": question.text,
            "type": question.type,
            "responses": responses,
            "statistics": statistics,
        }
        if question.options is not None:
            entry["options"] = list(question.options)
        if question.correctAnswers is not None:
            entry["correctAnswers"] = list(question.correctAnswers)
        questions.append(entry)

    participants: list[dict[str, Any]] = []
    for participant in state.participants:
        answered = [
            question_id
            for question_id, submissions in state.answers.items()
            if participant.id in submissions
        ]
        row: dict[str, Any] = {
            "id": participant.id,
            "name": participant.name,
            "totalAnswers": len(answered),
            "answeredQuestions": answered,
        }
        if has_graded:
            row["score"] = score_participant(state, participant.id)
        participants.append(row)

    return {
        "quizSummary": {
            "totalQuestions": len(state.questions),
            "totalParticipants": total_participants,
            "quizDate": generated_at or iso_now(),
            "isQuizStarted": state.is_quiz_started,
            "isQuizFinished": state.is_quiz_finished,
        },
        "questions": questions,
        "participants": participants,
    }


def _participation_percent(total_answers: int, total_questions: int) -> float:
    if total_questions <= 0:
        return 0.0
    return total_answers / total_questions * 100


def export_json(data: dict[str, Any], *, version: str = "1.0.0") -> str:
    questions = data["questions"]
    total_answers = sum(q["statistics"]["totalResponses"] for q in questions)
    average_rate = (
        sum(q["statistics"]["responseRate"] for q in questions) / len(questions) if questions else 0.0
    )
    enriched = {
        **data,
        "metadata": {
            "exportedAt": iso_now(),
            "version": version,
            "format": "json",
        },
        "quizSummary": {
            **data["quizSummary"],
            "totalAnswers": total_answers,
            "averageResponseRate": round(average_rate, 2),
        },
    }
    return json.dumps(enriched, ensure_ascii=False, indent=2)


def export_csv(data: dict[str, Any]) -> str:
    summary = data["quizSummary"]
    buffer = io.StringIO()
    buffer.write("# QUIZ RESULTS REPORT\n")
    buffer.write(f"# Date: {summary['quizDate']}\n")
    buffer.write(f"# Total questions: {summary['totalQuestions']}\n")
    buffer.write(f"# Total participants: {summary['totalParticipants']}\n")
    buffer.write("\n")

    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(
        [
            "question_id",
            "question_number",
            "question_text",
            "question_type",
            "participant_id",
            "participant_name",
            "answer",
        ]
    )
    for number, question in enumerate(data["questions"], start=1):
        if not question["responses"]:
            writer.writerow([question["id"], number, question["text"], question["type"], "", "No responses", ""])
            continue
        for response in question["responses"]:
            for answer in response["answers"]:
                writer.writerow(
                    [
                        question["id"],
                        number,
                        question["text"],
                        question["type"],
                        response["participantId"],
                        response["participantName"],
                        answer,
                    ]
                )

    buffer.write("\n# PARTICIPANT SUMMARY\n")
    writer.writerow(["participant_id", "participant_name", "total_answers", "total_questions", "participation_rate"])
    total_questions = summary["totalQuestions"]
    for participant in data["participants"]:
        rate = _participation_percent(participant["totalAnswers"], total_questions)
        writer.writerow(
            [
                participant["id"],
                participant["name"],
                participant["totalAnswers"],
                total_questions,
                f"{rate:.1f}%",
            ]
        )
    return buffer.getvalue()


def _bar(ratio: float, width: int) -> str:
    return "#" * round(max(0.0, min(1.0, ratio)) * width)


def export_text(data: dict[str, Any]) -> str:
    summary = data["quizSummary"]
    total_participants = summary["totalParticipants"]
    total_questions = summary["totalQuestions"]
    lines: list[str] = [
        "=" * REPORT_WIDTH,
        "QUIZ RESULTS REPORT".center(REPORT_WIDTH),
        "=" * REPORT_WIDTH,
        "",
        f"Date: {summary['quizDate']}",
        f"Total questions: {total_questions}",
        f"Total participants: {total_participants}",
        "",
        "=" * REPORT_WIDTH,
        "",
    ]

    for number, question in enumerate(data["questions"], start=1):
        statistics = question["statistics"]
        lines.append(f"{number}. {question['text']}")
        lines.append(f"   Type: {QUESTION_TYPE_LABELS.get(question['type'], question['type'])}")
        lines.append(
            f"   Responses: {statistics['totalResponses']}/{total_participants} "
            f"({statistics['responseRate']:.1f}%)"
        )
        lines.append("")
        option_counts = statistics.get("optionCounts")
        if option_counts is not None:
            lines.append("   Answer distribution:")
            for option, count in option_counts.items():
                ratio = count / total_participants if total_participants else 0.0
                lines.append(f"   > {option}: {count} ({ratio * 100:.1f}%) {_bar(ratio, 20)}".rstrip())
        elif question["type"] == "text-input":
            lines.append("   Text answers:")
            for index, response in enumerate(question["responses"], start=1):
                lines.append(f"   {index}. {response['participantName']}: \"{', '.join(response['answers'])}\"")
        lines.append("")
        lines.append("-" * REPORT_WIDTH)
        lines.append("")

    lines.append("PARTICIPANT SUMMARY")
    lines.append("-" * 30)
    for index, participant in enumerate(data["participants"], start=1):
        rate = _participation_percent(participant["totalAnswers"], total_questions)
        ratio = participant["totalAnswers"] / total_questions if total_questions else 0.0
        lines.append(f"{index}. {participant['name']}")
        lines.append(
            f"   Participation: {participant['totalAnswers']}/{total_questions} ({rate:.1f}%) {_bar(ratio, 10)}".rstrip()
        )
        score = participant.get("score")
        if score is not None:
            lines.append(f"   Score: {score['correct']} correct, {score['wrong']} wrong")

    lines.append("")
    return "\n".join(lines)


def export_filename(export_format: ExportFormat, day: date | None = None) -> str:
    current_day = day or datetime.now(timezone.utc).date()
    return f"quiz-results-{current_day.isoformat()}.{EXPORT_EXTENSIONS[export_format]}"


def render_export(state: RoomState, export_format: ExportFormat, *, version: str = "1.0.0") -> str:
    data = build_export_data(state)
    if export_format == "json":
        return export_json(data, version=version)
    if export_format == "csv":
        return export_csv(data)
    return export_text(data)
