"""
Read-only data access used by the statistics engine.

`StatsStore` is the contract the engine depends on; `SqlAlchemyStatsStore`
implements it on top of an `AsyncSession`. Every query that feeds a statistic
can be restricted to complete responses.
"""
from typing import List, Optional, Protocol

from sqlalchemy import extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app import models


class StatsStore(Protocol):
    async def count_responses(self, survey_id: int, completed_only: bool) -> int:
        ...

    async def average_completion_seconds(self, survey_id: int) -> Optional[float]:
        ...

    async def list_questions(self, survey_id: int) -> List[models.Question]:
        ...

    async def count_answers_for_question(
        self, question_id: int, completed_only: bool
    ) -> int:
        ...

    async def count_answers_for_option(
        self, option_id: int, completed_only: bool
    ) -> int:
        ...

    async def list_ratings_for_question(
        self, question_id: int, completed_only: bool
    ) -> List[int]:
        ...

    async def list_recent_text_answers(
        self, question_id: int, completed_only: bool, limit: int
    ) -> List[str]:
        ...


class SqlAlchemyStatsStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    def _answers_query(self, *columns, completed_only: bool):
        stmt = select(*columns).select_from(models.Answer)
        if completed_only:
            stmt = stmt.join(
                models.Response, models.Answer.response_id == models.Response.id
            ).where(models.Response.is_complete.is_(True))
        return stmt

    async def count_responses(self, survey_id: int, completed_only: bool) -> int:
        stmt = select(func.count(models.Response.id)).where(
            models.Response.survey_id == survey_id
        )
        if completed_only:
            stmt = stmt.where(models.Response.is_complete.is_(True))
        result = await self.session.execute(stmt)
        return result.scalar_one()

    def _duration_seconds(self):
        started = models.Response.started_at
        completed = models.Response.completed_at
        if self.session.get_bind().dialect.name == "sqlite":
            return (func.julianday(completed) - func.julianday(started)) * 86400.0
        return extract("epoch", completed - started)

    async def average_completion_seconds(self, survey_id: int) -> Optional[float]:
        stmt = select(func.avg(self._duration_seconds())).where(
            models.Response.survey_id == survey_id,
            models.Response.completed_at.isnot(None),
        )
        result = await self.session.execute(stmt)
        average = result.scalar_one_or_none()
        return float(average) if average is not None else None

    async def list_questions(self, survey_id: int) -> List[models.Question]:
        result = await self.session.execute(
            select(models.Question)
            .options(selectinload(models.Question.options))
            .where(models.Question.survey_id == survey_id)
            .order_by(models.Question.order)
        )
        return list(result.scalars().all())

    async def count_answers_for_question(
        self, question_id: int, completed_only: bool
    ) -> int:
        stmt = self._answers_query(
            func.count(models.Answer.id), completed_only=completed_only
        ).where(models.Answer.question_id == question_id)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def count_answers_for_option(
        self, option_id: int, completed_only: bool
    ) -> int:
        stmt = self._answers_query(
            func.count(models.Answer.id), completed_only=completed_only
        ).where(models.Answer.option_id == option_id)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def list_ratings_for_question(
        self, question_id: int, completed_only: bool
    ) -> List[int]:
        stmt = self._answers_query(
            models.Answer.rating, completed_only=completed_only
        ).where(
            models.Answer.question_id == question_id,
            models.Answer.rating.isnot(None),
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_recent_text_answers(
        self, question_id: int, completed_only: bool, limit: int
    ) -> List[str]:
        stmt = (
            self._answers_query(models.Answer.answer_text, completed_only=completed_only)
            .where(
                models.Answer.question_id == question_id,
                models.Answer.answer_text.isnot(None),
                models.Answer.answer_text != "",
            )
            .order_by(models.Answer.created_at.desc(), models.Answer.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
