import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sqlalchemy import func, select

from . import models
from . import schemas
from .api.endpoints import response as response_endpoints
from .api.endpoints import stats as stats_endpoints
from .api.endpoints import survey as survey_endpoints
from .crud import crud_survey
from .database import (
    AsyncSessionFactory,
    create_db_and_tables,
    engine,
    env_flag,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


# --- Configuration ---
AUTO_CREATE_TABLES = env_flag("AUTO_CREATE_TABLES", True)
SEED_SAMPLE_DATA = env_flag("SEED_SAMPLE_DATA", True)

SAMPLE_SURVEY = schemas.SurveyCreate(
    title="Favorite Programming Languages",
    description="A survey to find out which programming languages people like the most.",
    questions=[
        schemas.QuestionCreate(
            question_type=models.QUESTION_TYPE_MULTIPLE_CHOICE,
            question_text="What is your favorite systems programming language?",
            required=True,
            options=["Rust", "C++", "Go", "C"],
        ),
        schemas.QuestionCreate(
            question_type=models.QUESTION_TYPE_MULTIPLE_CHOICE,
            question_text="What is your favorite web backend language?",
            required=True,
            options=["Go", "Python", "JavaScript/Node.js", "Rust"],
        ),
        schemas.QuestionCreate(
            question_type=models.QUESTION_TYPE_MULTIPLE_CHOICE,
            question_text="What is your favorite web frontend framework?",
            required=True,
            options=["React", "Vue", "Svelte", "HTMX"],
        ),
    ],
)


async def seed_sample_data(session_factory=AsyncSessionFactory) -> bool:
    """Creates the sample survey when the database holds no surveys yet."""
    async with session_factory() as session:
        result = await session.execute(select(func.count(models.Survey.id)))
        if result.scalar_one() > 0:
            return False
        logger.info("No surveys found, creating sample data...")
        await crud_survey.create_survey(session, SAMPLE_SURVEY)
        return True


# --- Lifecycle events ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting...")
    if AUTO_CREATE_TABLES:
        await create_db_and_tables()
    if SEED_SAMPLE_DATA:
        await seed_sample_data()
    yield
    logger.info("Application shutting down...")
    await engine.dispose()


# --- FastAPI app instance ---
app = FastAPI(title="Survey Stats Backend", lifespan=lifespan)

# --- CORS middleware (needed for frontend access) ---
fallback_origins = [
    "http://127.0.0.1:5173",
    "http://localhost:5173",
]

env_origins = os.getenv("BACKEND_ALLOWED_ORIGINS")
origins = []

if env_origins:
    origins = [origin.strip() for origin in env_origins.split(",") if origin.strip()]
    logger.info("CORS: allowed origins from environment: %s", origins)
if not origins:
    origins = fallback_origins
    logger.info("CORS: using fallback origins: %s", fallback_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(survey_endpoints.router, prefix="/api/surveys", tags=["surveys"])
app.include_router(stats_endpoints.router, prefix="/api/surveys", tags=["statistics"])
app.include_router(response_endpoints.router, prefix="/api", tags=["responses"])


# --- API endpoints ---
@app.get("/")
async def read_root():
    return {"message": "Welcome to the Survey Stats Backend!"}


# --- Running the application ---

if __name__ == "__main__":
    import uvicorn

    # Host and port from environment variables, with fallbacks
    APP_HOST = os.getenv("APP_HOST", "127.0.0.1")
    APP_PORT = int(os.getenv("APP_PORT", "8000"))
    RELOAD_APP = os.getenv("RELOAD_APP", "True").lower() == "true"

    uvicorn.run("app.main:app", host=APP_HOST, port=APP_PORT, reload=RELOAD_APP)
