import logging
from typing import List, Optional

from app import models
from app.schemas import (
    NoBreakdown,
    OptionBreakdown,
    OptionStat,
    QuestionStats,
    RatingBreakdown,
    RatingStats,
    SurveyStats,
    TextSamples,
)
from app.services.stats_store import StatsStore

logger = logging.getLogger(__name__)

TEXT_SAMPLE_LIMIT = 10


def option_percentages(stats: List[OptionStat]) -> List[OptionStat]:
    """Fills in each option's share of all selections; every share is 0 when nothing was selected."""
    total = sum(stat.count for stat in stats)
    for stat in stats:
        stat.percentage = stat.count / total * 100 if total > 0 else 0.0
    return stats


def summarize_ratings(ratings: List[int]) -> Optional[RatingStats]:
    if not ratings:
        return None
    return RatingStats(
        average=sum(ratings) / len(ratings),
        min=min(ratings),
        max=max(ratings),
        count=len(ratings),
    )


class SurveyStatisticsService:
    """
    Aggregates stored responses of a survey into survey and per-question stats.

    Only complete responses feed the statistics. The service never writes;
    store errors propagate unchanged, so a result is either complete or not
    returned at all.
    """

    def __init__(self, store: StatsStore, text_sample_limit: int = TEXT_SAMPLE_LIMIT):
        self.store = store
        self.text_sample_limit = text_sample_limit

    async def compute_survey_stats(self, survey_id: int) -> SurveyStats:
        total_responses = await self.store.count_responses(survey_id, completed_only=True)
        total_started = await self.store.count_responses(survey_id, completed_only=False)
        average_time = await self.store.average_completion_seconds(survey_id)

        completion_rate = 0.0
        if total_started > 0:
            completion_rate = total_responses / total_started * 100

        logger.debug(
            "Survey %s: %d of %d responses complete",
            survey_id,
            total_responses,
            total_started,
        )
        return SurveyStats(
            survey_id=survey_id,
            total_responses=total_responses,
            completion_rate=completion_rate,
            average_time=average_time or 0.0,
        )

    async def compute_question_stats(self, survey_id: int) -> List[QuestionStats]:
        questions = await self.store.list_questions(survey_id)
        # The store orders by display order already; sort anyway so output order never depends on it
        questions = sorted(questions, key=lambda q: q.order)

        stats = []
        for question in questions:
            stats.append(await self.compute_single_question_stats(question))
        logger.debug("Computed stats for %d questions of survey %s", len(stats), survey_id)
        return stats

    async def compute_single_question_stats(self, question: models.Question) -> QuestionStats:
        response_count = await self.store.count_answers_for_question(
            question.id, completed_only=True
        )
        question_type = question.question_type

        if question_type in models.CHOICE_QUESTION_TYPES:
            details = OptionBreakdown(options=await self._option_stats(question))
        elif question_type == models.QUESTION_TYPE_RATING:
            details = RatingBreakdown(stats=await self._rating_stats(question))
        elif question_type == models.QUESTION_TYPE_TEXT:
            details = TextSamples(answers=await self._text_answers(question))
        else:
            logger.debug(
                "Question %s has unknown type %r, no breakdown", question.id, question_type
            )
            details = NoBreakdown()

        return QuestionStats(
            question_id=question.id,
            question_type=question_type,
            response_count=response_count,
            details=details,
        )

    async def _option_stats(self, question: models.Question) -> List[OptionStat]:
        stats = []
        for option in sorted(question.options, key=lambda o: o.order):
            count = await self.store.count_answers_for_option(option.id, completed_only=True)
            stats.append(
                OptionStat(option_id=option.id, option_text=option.text, count=count)
            )
        return option_percentages(stats)

    async def _rating_stats(self, question: models.Question) -> Optional[RatingStats]:
        ratings = await self.store.list_ratings_for_question(question.id, completed_only=True)
        return summarize_ratings(ratings)

    async def _text_answers(self, question: models.Question) -> List[str]:
        return await self.store.list_recent_text_answers(
            question.id, completed_only=True, limit=self.text_sample_limit
        )
