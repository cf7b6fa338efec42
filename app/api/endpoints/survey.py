from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud import crud_survey
from app.database import get_db_session
from app.exceptions import SurveyNotFoundError
from app import schemas

router = APIRouter()


def survey_not_found(exc: SurveyNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.get("", response_model=List[schemas.SurveyListItem])
async def list_surveys(db: AsyncSession = Depends(get_db_session)):
    """Lists all surveys, newest first, with their question counts."""
    surveys = await crud_survey.get_all_surveys(db)
    return [
        schemas.SurveyListItem(
            id=survey.id,
            title=survey.title,
            description=survey.description,
            is_active=survey.is_active,
            created_at=survey.created_at,
            updated_at=survey.updated_at,
            question_count=question_count,
        )
        for survey, question_count in surveys
    ]


@router.post(
    "", response_model=schemas.SurveyCreateResponse, status_code=status.HTTP_201_CREATED
)
async def create_survey(
    survey_in: schemas.SurveyCreate, db: AsyncSession = Depends(get_db_session)
):
    db_survey = await crud_survey.create_survey(db, survey_in)
    return schemas.SurveyCreateResponse(survey_id=db_survey.id)


@router.get("/{survey_id}", response_model=schemas.SurveyResponse)
async def read_survey(survey_id: int, db: AsyncSession = Depends(get_db_session)):
    db_survey = await crud_survey.get_survey(db, survey_id)
    if db_survey is None:
        raise HTTPException(status_code=404, detail="Survey not found")
    return schemas.SurveyResponse.model_validate(db_survey)


@router.put("/{survey_id}", response_model=schemas.SurveyUpdateResponse)
async def update_survey(
    survey_id: int,
    survey_in: schemas.SurveyUpdate,
    db: AsyncSession = Depends(get_db_session),
):
    try:
        await crud_survey.update_survey(db, survey_id, survey_in)
    except SurveyNotFoundError as exc:
        raise survey_not_found(exc)
    return schemas.SurveyUpdateResponse(survey_id=survey_id)


@router.delete("/{survey_id}", response_model=schemas.SurveyDeleteResponse)
async def delete_survey(survey_id: int, db: AsyncSession = Depends(get_db_session)):
    try:
        await crud_survey.delete_survey(db, survey_id)
    except SurveyNotFoundError as exc:
        raise survey_not_found(exc)
    return schemas.SurveyDeleteResponse(
        survey_id=survey_id, message=f"Survey {survey_id} deleted."
    )


@router.post(
    "/{survey_id}/questions",
    response_model=schemas.QuestionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_question(
    survey_id: int,
    question_in: schemas.QuestionCreate,
    db: AsyncSession = Depends(get_db_session),
):
    try:
        db_question = await crud_survey.add_question(db, survey_id, question_in)
    except SurveyNotFoundError as exc:
        raise survey_not_found(exc)
    return schemas.QuestionResponse.model_validate(db_question)
