from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    Boolean,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func  # For default timestamps
from .database import Base


QUESTION_TYPE_TEXT = "text"
QUESTION_TYPE_MULTIPLE_CHOICE = "multiple_choice"
QUESTION_TYPE_CHECKBOX = "checkbox"
QUESTION_TYPE_RATING = "rating"

QUESTION_TYPES = (
    QUESTION_TYPE_TEXT,
    QUESTION_TYPE_MULTIPLE_CHOICE,
    QUESTION_TYPE_CHECKBOX,
    QUESTION_TYPE_RATING,
)
CHOICE_QUESTION_TYPES = (QUESTION_TYPE_MULTIPLE_CHOICE, QUESTION_TYPE_CHECKBOX)


class Survey(Base):
    __tablename__ = "surveys"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), onupdate=func.now(), server_default=func.now()
    )

    # Questions are always handed out in display order
    questions = relationship(
        "Question", back_populates="survey", order_by="Question.order"
    )
    responses = relationship("Response", back_populates="survey")


class Question(Base):
    __tablename__ = "questions"
    __table_args__ = (
        UniqueConstraint("survey_id", "order", name="uq_questions_survey_order"),
    )
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True)
    survey_id = Column(Integer, ForeignKey("surveys.id"), nullable=False, index=True)
    question_type = Column(String, nullable=False)  # text, multiple_choice, checkbox, rating
    question_text = Column(Text, nullable=False)
    required = Column(Boolean, nullable=False, default=False)
    order = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), onupdate=func.now(), server_default=func.now()
    )

    survey = relationship("Survey", back_populates="questions")
    options = relationship(
        "Option", back_populates="question", order_by="Option.order"
    )


class Option(Base):
    __tablename__ = "options"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(
        Integer, ForeignKey("questions.id"), nullable=False, index=True
    )
    text = Column(String, nullable=False)
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    question = relationship("Question", back_populates="options")


class Response(Base):
    """One survey-taking session. Anonymous when user_id is empty."""

    __tablename__ = "responses"

    id = Column(Integer, primary_key=True, index=True)
    survey_id = Column(Integer, ForeignKey("surveys.id"), nullable=False, index=True)
    user_id = Column(String, nullable=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    is_complete = Column(Boolean, nullable=False, default=False)

    survey = relationship("Survey", back_populates="responses")
    answers = relationship("Answer", back_populates="response")


class Answer(Base):
    __tablename__ = "answers"

    id = Column(Integer, primary_key=True, index=True)
    response_id = Column(
        Integer, ForeignKey("responses.id"), nullable=False, index=True
    )
    question_id = Column(
        Integer, ForeignKey("questions.id"), nullable=False, index=True
    )
    # Only one of answer_text / option_id / rating is meaningful, depending on the question type
    answer_text = Column(Text, nullable=False, default="")
    option_id = Column(Integer, ForeignKey("options.id"), nullable=True, index=True)
    rating = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    response = relationship("Response", back_populates="answers")
    question = relationship("Question")
    option = relationship("Option")
