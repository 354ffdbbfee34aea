"""Domain exceptions and the HTTP status each one maps to."""
from typing import Optional
from uuid import UUID


class VotingError(RuntimeError):
    """Base class for errors that are safe to show to API clients."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class QuestionNotFoundError(VotingError):
    status_code = 404

    def __init__(self, question_id: UUID | str | None = None):
        super().__init__("Question not found or inactive")
        self.question_id = question_id


class QuestionnaireNotFoundError(VotingError):
    status_code = 404

    def __init__(self, questionnaire_id: UUID | str | None = None):
        super().__init__("Questionnaire not found or not active")
        self.questionnaire_id = questionnaire_id


class BlogPostNotFoundError(VotingError):
    status_code = 404

    def __init__(self, slug: str | None = None):
        super().__init__("Blog post not found")
        self.slug = slug


class ResponseValidationError(VotingError):
    """A response payload does not satisfy its question's constraints."""

    status_code = 400

    def __init__(self, message: str, *, field: Optional[str] = None, constraint: Optional[str] = None):
        super().__init__(message)
        self.field = field
        self.constraint = constraint


class QuestionConfigError(VotingError):
    """Admin-supplied question configuration is invalid for its type."""

    status_code = 400


class DuplicateVoteError(VotingError):
    status_code = 409

    def __init__(self, message: str = "You have already voted on this question"):
        super().__init__(message)


class DuplicateSlugError(VotingError):
    status_code = 409

    def __init__(self, slug: str):
        super().__init__(f"A post with slug '{slug}' already exists")
        self.slug = slug


class RateLimitExceededError(VotingError):
    status_code = 429

    def __init__(self, action_type: str, retry_after: int):
        super().__init__("Rate limit exceeded. Please try again later.")
        self.action_type = action_type
        self.retry_after = max(0, int(retry_after))


class InvalidVoterTokenError(VotingError):
    status_code = 401

    def __init__(self, message: str = "Voter token is missing or invalid"):
        super().__init__(message)
