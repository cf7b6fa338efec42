from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from app import models
from app.crud import crud_response, crud_survey
from app.exceptions import (
    OptionNotFoundError,
    QuestionNotFoundError,
    ResponseAlreadyCompleteError,
    ResponseNotFoundError,
    SurveyNotFoundError,
)
from app.schemas import AnswerInput, QuestionCreate, SurveyCreate, SurveyUpdate


async def count_rows(db, model, *criteria):
    stmt = select(func.count()).select_from(model)
    if criteria:
        stmt = stmt.where(*criteria)
    result = await db.execute(stmt)
    return result.scalar_one()


def survey_payload():
    return SurveyCreate(
        title="Lunch",
        description="Where should we eat?",
        questions=[
            QuestionCreate(
                question_type="multiple_choice",
                question_text="Cuisine?",
                required=True,
                options=["Thai", "Pizza", "Ramen"],
            ),
            QuestionCreate(question_type="rating", question_text="How hungry?"),
            QuestionCreate(question_type="text", question_text="Anything else?"),
        ],
    )


async def test_create_survey_assigns_question_and_option_order(db):
    created = await crud_survey.create_survey(db, survey_payload())

    survey = await crud_survey.get_survey(db, created.id)
    assert survey.title == "Lunch"
    assert survey.is_active is True
    assert [q.order for q in survey.questions] == [1, 2, 3]
    assert [(o.text, o.order) for o in survey.questions[0].options] == [
        ("Thai", 1),
        ("Pizza", 2),
        ("Ramen", 3),
    ]
    assert survey.questions[1].options == []


async def test_get_survey_returns_none_when_missing(db):
    assert await crud_survey.get_survey(db, 404) is None


async def test_add_question_continues_after_highest_order(db, seed):
    survey = await seed.survey()
    await seed.question(survey, "text", order=5)
    await db.commit()

    question = await crud_survey.add_question(
        db,
        survey.id,
        QuestionCreate(question_type="checkbox", question_text="Pick", options=["x", "y"]),
    )

    assert question.order == 6
    assert [(o.text, o.order) for o in question.options] == [("x", 1), ("y", 2)]


async def test_add_question_to_empty_survey_starts_at_one(db, seed):
    survey = await seed.survey()
    await db.commit()

    question = await crud_survey.add_question(
        db, survey.id, QuestionCreate(question_type="text", question_text="Hi?")
    )

    assert question.order == 1


async def test_add_question_to_missing_survey(db):
    with pytest.raises(SurveyNotFoundError):
        await crud_survey.add_question(
            db, 999, QuestionCreate(question_type="text", question_text="Hi?")
        )


async def test_list_surveys_with_question_counts(db):
    first = await crud_survey.create_survey(db, survey_payload())
    second = await crud_survey.create_survey(db, SurveyCreate(title="Empty"))

    surveys = await crud_survey.get_all_surveys(db)

    assert [(s.id, count) for s, count in surveys] == [(second.id, 0), (first.id, 3)]


async def test_update_survey(db):
    created = await crud_survey.create_survey(db, SurveyCreate(title="Draft"))

    updated = await crud_survey.update_survey(
        db, created.id, SurveyUpdate(title="Final", description="done", is_active=False)
    )

    assert updated.title == "Final"
    assert updated.description == "done"
    assert updated.is_active is False


async def test_update_missing_survey(db):
    with pytest.raises(SurveyNotFoundError):
        await crud_survey.update_survey(db, 1, SurveyUpdate(title="x"))


async def test_submit_response_stores_answers(db):
    survey = await crud_survey.create_survey(db, survey_payload())
    survey = await crud_survey.get_survey(db, survey.id)
    choice, rating, text = survey.questions
    started = datetime.now(timezone.utc) - timedelta(minutes=3)

    response = await crud_response.submit_response(
        db,
        survey.id,
        [
            AnswerInput(question_id=choice.id, option_id=choice.options[1].id),
            AnswerInput(question_id=rating.id, rating=4),
            AnswerInput(question_id=text.id, answer_text="Bring dessert"),
        ],
        ip_address="10.0.0.1",
        user_agent="pytest",
        started_at=started,
    )

    assert response.is_complete is True
    assert response.user_id is None
    assert response.completed_at >= response.started_at
    assert await count_rows(db, models.Answer, models.Answer.response_id == response.id) == 3


async def test_submit_response_to_missing_survey(db):
    with pytest.raises(SurveyNotFoundError):
        await crud_response.submit_response(db, 77, [])


async def test_unknown_question_is_rejected_before_writing(db):
    survey = await crud_survey.create_survey(db, SurveyCreate(title="Atomic"))

    with pytest.raises(QuestionNotFoundError):
        await crud_response.submit_response(
            db, survey.id, [AnswerInput(question_id=9999, answer_text="orphan")]
        )

    assert await count_rows(db, models.Response) == 0
    assert await count_rows(db, models.Answer) == 0


async def test_answer_to_another_surveys_question_is_rejected(db):
    mine = await crud_survey.create_survey(db, survey_payload())
    theirs = await crud_survey.get_survey(
        db, (await crud_survey.create_survey(db, survey_payload())).id
    )

    with pytest.raises(QuestionNotFoundError) as excinfo:
        await crud_response.submit_response(
            db, mine.id, [AnswerInput(question_id=theirs.questions[2].id, answer_text="hi")]
        )

    assert excinfo.value.entity_id == theirs.questions[2].id
    assert await count_rows(db, models.Response) == 0
    await crud_survey.delete_survey(db, theirs.id)
    assert await count_rows(db, models.Survey) == 1


async def test_option_must_belong_to_the_answered_question(db):
    mine = await crud_survey.get_survey(
        db, (await crud_survey.create_survey(db, survey_payload())).id
    )
    theirs = await crud_survey.get_survey(
        db, (await crud_survey.create_survey(db, survey_payload())).id
    )
    choice, rating, _text = mine.questions

    with pytest.raises(OptionNotFoundError):
        await crud_response.submit_response(
            db,
            mine.id,
            [AnswerInput(question_id=choice.id, option_id=theirs.questions[0].options[0].id)],
        )
    with pytest.raises(OptionNotFoundError):
        await crud_response.submit_response(
            db,
            mine.id,
            [AnswerInput(question_id=rating.id, option_id=choice.options[0].id)],
        )

    assert await count_rows(db, models.Answer) == 0


async def test_completing_with_a_foreign_question_keeps_response_open(db):
    mine = await crud_survey.create_survey(db, survey_payload())
    theirs = await crud_survey.get_survey(
        db, (await crud_survey.create_survey(db, survey_payload())).id
    )
    started = await crud_response.start_response(db, mine.id)

    with pytest.raises(QuestionNotFoundError):
        await crud_response.complete_response(
            db, started.id, [AnswerInput(question_id=theirs.questions[1].id, rating=3)]
        )

    reloaded = await crud_response.get_response(db, started.id)
    assert reloaded.is_complete is False
    assert await count_rows(db, models.Answer) == 0


async def test_start_then_complete_response(db):
    survey = await crud_survey.create_survey(db, survey_payload())
    survey = await crud_survey.get_survey(db, survey.id)
    text_question = survey.questions[2]

    started = await crud_response.start_response(db, survey.id, user_id="u-1")
    assert started.is_complete is False
    assert started.completed_at is None

    completed = await crud_response.complete_response(
        db, started.id, [AnswerInput(question_id=text_question.id, answer_text="ok")]
    )

    assert completed.is_complete is True
    assert completed.completed_at is not None
    assert await count_rows(db, models.Answer) == 1

    with pytest.raises(ResponseAlreadyCompleteError):
        await crud_response.complete_response(db, started.id, [])


async def test_complete_missing_response(db):
    with pytest.raises(ResponseNotFoundError):
        await crud_response.complete_response(db, 5, [])


async def test_delete_survey_removes_all_related_rows(db):
    doomed = await crud_survey.create_survey(db, survey_payload())
    kept = await crud_survey.create_survey(db, survey_payload())
    for survey_id in (doomed.id, kept.id):
        survey = await crud_survey.get_survey(db, survey_id)
        choice, rating, text = survey.questions
        await crud_response.submit_response(
            db,
            survey_id,
            [
                AnswerInput(question_id=choice.id, option_id=choice.options[0].id),
                AnswerInput(question_id=rating.id, rating=5),
                AnswerInput(question_id=text.id, answer_text="yes"),
            ],
        )
        await crud_response.start_response(db, survey_id)

    await crud_survey.delete_survey(db, doomed.id)

    assert await crud_survey.get_survey(db, doomed.id) is None
    assert await count_rows(db, models.Survey) == 1
    assert await count_rows(db, models.Question) == 3
    assert await count_rows(db, models.Option) == 3
    assert await count_rows(db, models.Response) == 2
    assert await count_rows(db, models.Answer) == 3
    assert await count_rows(db, models.Question, models.Question.survey_id == doomed.id) == 0
    assert await count_rows(db, models.Response, models.Response.survey_id == doomed.id) == 0


async def test_delete_missing_survey(db):
    with pytest.raises(SurveyNotFoundError):
        await crud_survey.delete_survey(db, 31337)


async def test_delete_survey_clears_answers_left_by_other_surveys(db, seed):
    target = await crud_survey.get_survey(
        db, (await crud_survey.create_survey(db, survey_payload())).id
    )
    other = await crud_survey.create_survey(db, SurveyCreate(title="Other"))
    choice, rating, _text = target.questions
    # Rows written before answers were checked against their survey
    stray = await seed.response(other)
    await seed.answer(stray, choice, option=choice.options[0])
    await seed.answer(stray, rating, rating=2)
    await db.commit()

    await crud_survey.delete_survey(db, target.id)

    assert await count_rows(db, models.Survey) == 1
    assert await count_rows(db, models.Question) == 0
    assert await count_rows(db, models.Option) == 0
    assert await count_rows(db, models.Answer) == 0
    assert await count_rows(db, models.Response) == 1
