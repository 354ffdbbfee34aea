"""Database models."""
from superoptimised.models.user import User
from superoptimised.models.question import Question
from superoptimised.models.questionnaire import Questionnaire, QuestionnaireQuestion
from superoptimised.models.voter_token import VoterToken
from superoptimised.models.question_response import QuestionResponse
from superoptimised.models.rate_limit import RateLimit
from superoptimised.models.engagement import EngagementStats, XpLedger
from superoptimised.models.analytics_daily import AnalyticsDaily
from superoptimised.models.blog_post import BlogPost

__all__ = [
    "User",
    "Question",
    "Questionnaire",
    "QuestionnaireQuestion",
    "VoterToken",
    "QuestionResponse",
    "RateLimit",
    "EngagementStats",
    "XpLedger",
    "AnalyticsDaily",
    "BlogPost",
]
