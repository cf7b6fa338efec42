from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import Annotated, List, Optional, Union, Literal
from datetime import datetime


# --- Schemas for survey definitions ---


class OptionResponse(BaseModel):
    id: int
    text: str
    order: int

    model_config = ConfigDict(from_attributes=True)


class QuestionCreate(BaseModel):
    question_type: str = Field(..., min_length=1)
    question_text: str = Field(..., min_length=1)
    required: bool = False
    options: List[str] = Field(default_factory=list)


class QuestionResponse(BaseModel):
    id: int
    survey_id: int
    question_type: str
    question_text: str
    required: bool
    order: int
    options: List[OptionResponse] = []

    model_config = ConfigDict(from_attributes=True)


class SurveyBase(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    is_active: bool = True


class SurveyCreate(SurveyBase):
    questions: List[QuestionCreate] = []


class SurveyUpdate(SurveyBase):
    pass


class SurveyCreateResponse(BaseModel):
    survey_id: int
    message: str = "Survey created."


class SurveyUpdateResponse(BaseModel):
    survey_id: int
    message: str = "Survey updated."


class SurveyDeleteResponse(BaseModel):
    survey_id: int
    message: str = "Survey deleted."


class SurveyResponse(SurveyBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    questions: List[QuestionResponse] = []

    model_config = ConfigDict(from_attributes=True)


class SurveyListItem(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    question_count: int

    model_config = ConfigDict(from_attributes=True)


# --- Schemas for collecting responses ---


class AnswerInput(BaseModel):
    question_id: int
    answer_text: str = ""
    option_id: Optional[int] = None
    rating: Optional[int] = None


class ResponseStart(BaseModel):
    user_id: Optional[str] = None


class ResponseSubmit(BaseModel):
    user_id: Optional[str] = None
    started_at: Optional[datetime] = None
    answers: List[AnswerInput] = []


class ResponseComplete(BaseModel):
    answers: List[AnswerInput] = []


class ResponseResult(BaseModel):
    response_id: int
    survey_id: int
    is_complete: bool
    started_at: datetime
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="before")
    @classmethod
    def map_response_id(cls, data):
        # Allow building directly from a models.Response instance
        if not isinstance(data, dict) and hasattr(data, "id"):
            return {
                "response_id": data.id,
                "survey_id": data.survey_id,
                "is_complete": data.is_complete,
                "started_at": data.started_at,
                "completed_at": data.completed_at,
            }
        return data


# --- Statistics ---


class SurveyStats(BaseModel):
    survey_id: int
    total_responses: int = 0
    completion_rate: float = 0.0
    average_time: float = Field(0.0, alias="average_time_seconds")

    model_config = ConfigDict(populate_by_name=True)


class OptionStat(BaseModel):
    option_id: int
    option_text: str
    count: int
    percentage: float = 0.0


class RatingStats(BaseModel):
    average: float
    min: int
    max: int
    count: int


class OptionBreakdown(BaseModel):
    kind: Literal["options"] = "options"
    options: List[OptionStat] = []


class RatingBreakdown(BaseModel):
    kind: Literal["rating"] = "rating"
    # None means no ratings were submitted, not an average of zero
    stats: Optional[RatingStats] = None


class TextSamples(BaseModel):
    kind: Literal["text"] = "text"
    answers: List[str] = []


class NoBreakdown(BaseModel):
    kind: Literal["none"] = "none"


QuestionBreakdown = Annotated[
    Union[OptionBreakdown, RatingBreakdown, TextSamples, NoBreakdown],
    Field(discriminator="kind"),
]


class QuestionStats(BaseModel):
    question_id: int
    question_type: str
    response_count: int = 0
    details: QuestionBreakdown = Field(default_factory=NoBreakdown)

    @property
    def option_stats(self) -> Optional[List[OptionStat]]:
        if isinstance(self.details, OptionBreakdown):
            return self.details.options
        return None

    @property
    def rating_stats(self) -> Optional[RatingStats]:
        if isinstance(self.details, RatingBreakdown):
            return self.details.stats
        return None

    @property
    def text_answers(self) -> Optional[List[str]]:
        if isinstance(self.details, TextSamples):
            return self.details.answers
        return None


class SurveyResults(BaseModel):
    """Everything a results page needs for one survey."""

    survey: SurveyListItem
    stats: SurveyStats
    questions: List[QuestionStats] = []
