import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app import models
from app.exceptions import (
    OptionNotFoundError,
    QuestionNotFoundError,
    ResponseAlreadyCompleteError,
    ResponseNotFoundError,
    SurveyNotFoundError,
)
from app.schemas import AnswerInput

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def _ensure_survey_exists(db: AsyncSession, survey_id: int) -> None:
    result = await db.execute(
        select(models.Survey.id).where(models.Survey.id == survey_id)
    )
    if result.scalar_one_or_none() is None:
        raise SurveyNotFoundError(survey_id)


async def _check_answers(
    db: AsyncSession, survey_id: int, answers: Iterable[AnswerInput]
) -> List[AnswerInput]:
    """
    Makes sure every answer points at a question of this survey, and that a
    chosen option belongs to the answered question. Nothing is written.
    """
    answers = list(answers)
    if not answers:
        return answers

    question_ids = set(
        (
            await db.execute(
                select(models.Question.id).where(models.Question.survey_id == survey_id)
            )
        ).scalars()
    )
    option_owners: Dict[int, int] = dict(
        (
            await db.execute(
                select(models.Option.id, models.Option.question_id)
                .join(models.Question, models.Option.question_id == models.Question.id)
                .where(models.Question.survey_id == survey_id)
            )
        ).all()
    )

    for answer_in in answers:
        if answer_in.question_id not in question_ids:
            raise QuestionNotFoundError(answer_in.question_id)
        if (
            answer_in.option_id is not None
            and option_owners.get(answer_in.option_id) != answer_in.question_id
        ):
            raise OptionNotFoundError(answer_in.option_id)
    return answers


def _add_answers(
    db: AsyncSession, response_id: int, answers: Iterable[AnswerInput]
) -> int:
    added = 0
    for answer_in in answers:
        db.add(
            models.Answer(
                response_id=response_id,
                question_id=answer_in.question_id,
                answer_text=answer_in.answer_text or "",
                option_id=answer_in.option_id,
                rating=answer_in.rating,
                created_at=utcnow(),
            )
        )
        added += 1
    return added


async def get_response(db: AsyncSession, response_id: int) -> Optional[models.Response]:
    return await db.get(models.Response, response_id)


async def start_response(
    db: AsyncSession,
    survey_id: int,
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> models.Response:
    """Opens an in-progress response. It counts as started but not complete."""
    await _ensure_survey_exists(db, survey_id)
    db_response = models.Response(
        survey_id=survey_id,
        user_id=user_id,
        ip_address=ip_address,
        user_agent=user_agent,
        started_at=utcnow(),
        is_complete=False,
    )
    db.add(db_response)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("Response %s started for survey %s", db_response.id, survey_id)
    return db_response


async def complete_response(
    db: AsyncSession, response_id: int, answers: Iterable[AnswerInput]
) -> models.Response:
    """Stores the answers of an in-progress response and marks it complete, atomically."""
    db_response = await get_response(db, response_id)
    if db_response is None:
        raise ResponseNotFoundError(response_id)
    if db_response.is_complete:
        raise ResponseAlreadyCompleteError(response_id)
    answers = await _check_answers(db, db_response.survey_id, answers)

    try:
        answer_count = _add_answers(db, db_response.id, answers)
        db_response.completed_at = max(utcnow(), _as_utc(db_response.started_at))
        db_response.is_complete = True
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Response %s completed with %d answers", db_response.id, answer_count
    )
    return db_response


async def submit_response(
    db: AsyncSession,
    survey_id: int,
    answers: Iterable[AnswerInput],
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    started_at: Optional[datetime] = None,
) -> models.Response:
    """
    Stores a complete response together with its answers. Either the response
    and all answers are committed, or nothing is.
    """
    await _ensure_survey_exists(db, survey_id)
    answers = await _check_answers(db, survey_id, answers)
    completed_at = utcnow()
    started_at = _as_utc(started_at) if started_at else completed_at
    if started_at > completed_at:
        started_at = completed_at

    try:
        db_response = models.Response(
            survey_id=survey_id,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            started_at=started_at,
            completed_at=completed_at,
            is_complete=True,
        )
        db.add(db_response)
        await db.flush()  # Flush to get the response id for the answers
        answer_count = _add_answers(db, db_response.id, answers)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Response %s submitted for survey %s with %d answers",
        db_response.id,
        survey_id,
        answer_count,
    )
    return db_response


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything written here is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
