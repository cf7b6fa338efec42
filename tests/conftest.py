from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from app import models
from app.database import (
    create_db_and_tables,
    enable_sqlite_foreign_keys,
    make_session_factory,
)

BASE_TIME = datetime(2026, 1, 5, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
async def engine():
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(test_engine)
    await create_db_and_tables(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


class Seeder:
    """Writes fixture rows straight to the database, bypassing the repository."""

    def __init__(self, session):
        self.session = session

    async def survey(self, title: str = "Team survey") -> models.Survey:
        survey = models.Survey(title=title, description="fixture", is_active=True)
        self.session.add(survey)
        await self.session.flush()
        return survey

    async def question(
        self,
        survey: models.Survey,
        question_type: str,
        order: int,
        options: Optional[List[str]] = None,
        text: str = "Question?",
    ) -> models.Question:
        question = models.Question(
            survey_id=survey.id,
            question_type=question_type,
            question_text=text,
            order=order,
        )
        self.session.add(question)
        await self.session.flush()
        for position, option_text in enumerate(options or [], start=1):
            self.session.add(
                models.Option(question_id=question.id, text=option_text, order=position)
            )
        await self.session.flush()
        return question

    async def options_of(self, question: models.Question) -> List[models.Option]:
        result = await self.session.execute(
            select(models.Option)
            .where(models.Option.question_id == question.id)
            .order_by(models.Option.order)
        )
        return list(result.scalars().all())

    async def response(
        self,
        survey: models.Survey,
        complete: bool = True,
        started_at: datetime = BASE_TIME,
        duration: timedelta = timedelta(minutes=2),
    ) -> models.Response:
        response = models.Response(
            survey_id=survey.id,
            ip_address="127.0.0.1",
            user_agent="pytest",
            started_at=started_at,
            completed_at=started_at + duration if complete else None,
            is_complete=complete,
        )
        self.session.add(response)
        await self.session.flush()
        return response

    async def answer(
        self,
        response: models.Response,
        question: models.Question,
        answer_text: str = "",
        option: Optional[models.Option] = None,
        rating: Optional[int] = None,
        created_at: datetime = BASE_TIME,
    ) -> models.Answer:
        answer = models.Answer(
            response_id=response.id,
            question_id=question.id,
            answer_text=answer_text,
            option_id=option.id if option is not None else None,
            rating=rating,
            created_at=created_at,
        )
        self.session.add(answer)
        await self.session.flush()
        return answer


@pytest.fixture
def seed(db):
    return Seeder(db)
