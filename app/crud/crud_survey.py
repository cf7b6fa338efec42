import logging
from typing import List, Optional, Tuple

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql import func

from app import models
from app.exceptions import SurveyNotFoundError
from app.schemas import QuestionCreate, SurveyCreate, SurveyUpdate

logger = logging.getLogger(__name__)


async def get_survey(db: AsyncSession, survey_id: int) -> Optional[models.Survey]:
    """Loads a survey with its questions and their options, or None."""
    result = await db.execute(
        select(models.Survey)
        .options(
            selectinload(models.Survey.questions).selectinload(models.Question.options)
        )
        .where(models.Survey.id == survey_id)
    )
    return result.scalar_one_or_none()


async def get_survey_or_raise(db: AsyncSession, survey_id: int) -> models.Survey:
    db_survey = await get_survey(db, survey_id)
    if db_survey is None:
        raise SurveyNotFoundError(survey_id)
    return db_survey


async def get_all_surveys(db: AsyncSession) -> List[Tuple[models.Survey, int]]:
    """Returns (survey, question_count) pairs, newest survey first."""
    question_count = (
        select(func.count(models.Question.id))
        .where(models.Question.survey_id == models.Survey.id)
        .correlate(models.Survey)
        .scalar_subquery()
    )
    result = await db.execute(
        select(models.Survey, question_count).order_by(
            models.Survey.created_at.desc(), models.Survey.id.desc()
        )
    )
    return [(survey, count) for survey, count in result.all()]


async def _next_question_order(db: AsyncSession, survey_id: int) -> int:
    result = await db.execute(
        select(func.coalesce(func.max(models.Question.order), 0)).where(
            models.Question.survey_id == survey_id
        )
    )
    return result.scalar_one() + 1


async def _insert_question(
    db: AsyncSession, survey_id: int, question_in: QuestionCreate
) -> models.Question:
    db_question = models.Question(
        survey_id=survey_id,
        question_type=question_in.question_type,
        question_text=question_in.question_text,
        required=question_in.required,
        order=await _next_question_order(db, survey_id),
    )
    db.add(db_question)
    await db.flush()

    db.add_all(
        models.Option(question_id=db_question.id, text=option_text, order=position)
        for position, option_text in enumerate(question_in.options, start=1)
    )
    await db.flush()
    return db_question


async def create_survey(db: AsyncSession, survey_in: SurveyCreate) -> models.Survey:
    """Creates a survey and its initial questions in one transaction."""
    try:
        db_survey = models.Survey(
            title=survey_in.title,
            description=survey_in.description,
            is_active=survey_in.is_active,
        )
        db.add(db_survey)
        await db.flush()  # Flush to get the id of the new survey

        for question_in in survey_in.questions:
            await _insert_question(db, db_survey.id, question_in)

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Survey %s created with %d questions", db_survey.id, len(survey_in.questions)
    )
    return db_survey


async def update_survey(
    db: AsyncSession, survey_id: int, survey_in: SurveyUpdate
) -> models.Survey:
    db_survey = await get_survey_or_raise(db, survey_id)
    db_survey.title = survey_in.title
    db_survey.description = survey_in.description
    db_survey.is_active = survey_in.is_active
    db_survey.updated_at = func.now()
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(db_survey)
    logger.info("Survey %s updated", survey_id)
    return db_survey


async def add_question(
    db: AsyncSession, survey_id: int, question_in: QuestionCreate
) -> models.Question:
    """
    Appends a question to a survey at display order max(existing) + 1. Orders
    only grow while questions are added, but removing the highest question
    frees its number for the next one.
    Options get orders 1..n in the order they were given.
    """
    await get_survey_or_raise(db, survey_id)
    try:
        db_question = await _insert_question(db, survey_id, question_in)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    result = await db.execute(
        select(models.Question)
        .options(selectinload(models.Question.options))
        .where(models.Question.id == db_question.id)
        .execution_options(populate_existing=True)
    )
    logger.info(
        "Question %s (%s) added to survey %s at position %s",
        db_question.id,
        db_question.question_type,
        survey_id,
        db_question.order,
    )
    return result.scalar_one()


async def delete_survey(db: AsyncSession, survey_id: int) -> None:
    """
    Deletes a survey and everything hanging off it as one transaction.

    Children go before parents so foreign keys hold at every step:
    answers, responses, options, questions, survey. If any statement fails
    the whole deletion is rolled back and the error is re-raised.
    """
    exists = await db.execute(
        select(models.Survey.id).where(models.Survey.id == survey_id)
    )
    if exists.scalar_one_or_none() is None:
        raise SurveyNotFoundError(survey_id)

    response_ids = select(models.Response.id).where(
        models.Response.survey_id == survey_id
    )
    question_ids = select(models.Question.id).where(
        models.Question.survey_id == survey_id
    )
    option_ids = select(models.Option.id).where(
        models.Option.question_id.in_(question_ids)
    )
    statements = [
        # Answers from other surveys' responses may still point at these rows
        delete(models.Answer).where(
            or_(
                models.Answer.response_id.in_(response_ids),
                models.Answer.question_id.in_(question_ids),
                models.Answer.option_id.in_(option_ids),
            )
        ),
        delete(models.Response).where(models.Response.survey_id == survey_id),
        delete(models.Option).where(models.Option.question_id.in_(question_ids)),
        delete(models.Question).where(models.Question.survey_id == survey_id),
        delete(models.Survey).where(models.Survey.id == survey_id),
    ]
    try:
        for stmt in statements:
            await db.execute(stmt.execution_options(synchronize_session=False))
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    db.expunge_all()
    logger.info("Survey %s and all related data deleted", survey_id)
