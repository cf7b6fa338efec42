from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud import crud_response
from app.database import get_db_session
from app.exceptions import (
    NotFoundError,
    ResponseAlreadyCompleteError,
    SurveyNotFoundError,
)
from app import schemas

router = APIRouter()


def client_info(request: Request):
    ip_address = request.client.host if request.client else None
    return ip_address, request.headers.get("user-agent")


@router.post(
    "/surveys/{survey_id}/responses",
    response_model=schemas.ResponseResult,
    status_code=status.HTTP_201_CREATED,
)
async def submit_response(
    survey_id: int,
    response_in: schemas.ResponseSubmit,
    request: Request,
    db: AsyncSession = Depends(get_db_session),
):
    """
    Stores a complete response and all of its answers. Answers that name a
    question or option outside the survey get a 404 and nothing is stored.
    """
    ip_address, user_agent = client_info(request)
    try:
        db_response = await crud_response.submit_response(
            db,
            survey_id,
            response_in.answers,
            user_id=response_in.user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            started_at=response_in.started_at,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return schemas.ResponseResult.model_validate(db_response)


@router.post(
    "/surveys/{survey_id}/responses/start",
    response_model=schemas.ResponseResult,
    status_code=status.HTTP_201_CREATED,
)
async def start_response(
    survey_id: int,
    response_in: schemas.ResponseStart,
    request: Request,
    db: AsyncSession = Depends(get_db_session),
):
    ip_address, user_agent = client_info(request)
    try:
        db_response = await crud_response.start_response(
            db,
            survey_id,
            user_id=response_in.user_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    except SurveyNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return schemas.ResponseResult.model_validate(db_response)


@router.post("/responses/{response_id}/complete", response_model=schemas.ResponseResult)
async def complete_response(
    response_id: int,
    response_in: schemas.ResponseComplete,
    db: AsyncSession = Depends(get_db_session),
):
    try:
        db_response = await crud_response.complete_response(
            db, response_id, response_in.answers
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ResponseAlreadyCompleteError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return schemas.ResponseResult.model_validate(db_response)
