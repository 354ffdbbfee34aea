from superoptimised.services.analytics_service import AnalyticsService, TimeRange
from superoptimised.services.auth_service import AuthService, AuthError
from superoptimised.services.blog_service import BlogService
from superoptimised.services.engagement_service import EngagementService
from superoptimised.services.identity import Identity, UserIdentity, VoterIdentity
from superoptimised.services.question_service import QuestionService
from superoptimised.services.questionnaire_service import QuestionnaireService
from superoptimised.services.rate_limit_service import RateLimitService, RateLimitStatus, normalize_ip
from superoptimised.services.response_service import ResponseService, ResponseRecord
from superoptimised.services.voter_token_service import VoterTokenService

__all__ = [
    "AnalyticsService",
    "TimeRange",
    "AuthService",
    "AuthError",
    "BlogService",
    "EngagementService",
    "Identity",
    "UserIdentity",
    "VoterIdentity",
    "QuestionService",
    "QuestionnaireService",
    "RateLimitService",
    "RateLimitStatus",
    "normalize_ip",
    "ResponseService",
    "ResponseRecord",
    "VoterTokenService",
]
