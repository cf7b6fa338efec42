from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud import crud_survey
from app.database import get_db_session
from app.services.statistics import SurveyStatisticsService
from app.services.stats_store import SqlAlchemyStatsStore
from app import schemas

router = APIRouter()


def get_statistics_service(
    db: AsyncSession = Depends(get_db_session),
) -> SurveyStatisticsService:
    return SurveyStatisticsService(SqlAlchemyStatsStore(db))


async def require_survey(survey_id: int, db: AsyncSession):
    db_survey = await crud_survey.get_survey(db, survey_id)
    if db_survey is None:
        raise HTTPException(status_code=404, detail="Survey not found")
    return db_survey


@router.get("/{survey_id}/stats", response_model=schemas.SurveyStats)
async def read_survey_stats(
    survey_id: int,
    db: AsyncSession = Depends(get_db_session),
    service: SurveyStatisticsService = Depends(get_statistics_service),
):
    await require_survey(survey_id, db)
    return await service.compute_survey_stats(survey_id)


@router.get("/{survey_id}/stats/questions", response_model=List[schemas.QuestionStats])
async def read_question_stats(
    survey_id: int,
    db: AsyncSession = Depends(get_db_session),
    service: SurveyStatisticsService = Depends(get_statistics_service),
):
    await require_survey(survey_id, db)
    return await service.compute_question_stats(survey_id)


@router.get("/{survey_id}/results", response_model=schemas.SurveyResults)
async def read_survey_results(
    survey_id: int,
    db: AsyncSession = Depends(get_db_session),
    service: SurveyStatisticsService = Depends(get_statistics_service),
):
    """Survey summary, survey-level stats and per-question stats in one payload."""
    db_survey = await require_survey(survey_id, db)
    summary = schemas.SurveyListItem(
        id=db_survey.id,
        title=db_survey.title,
        description=db_survey.description,
        is_active=db_survey.is_active,
        created_at=db_survey.created_at,
        updated_at=db_survey.updated_at,
        question_count=len(db_survey.questions),
    )
    return schemas.SurveyResults(
        survey=summary,
        stats=await service.compute_survey_stats(survey_id),
        questions=await service.compute_question_stats(survey_id),
    )
