"""Question type registry.

Each of the six question types pairs a configuration model (what an admin
stores in ``Question.question_data``) with a response model (what a voter
submits) and a checker that enforces the constraints linking the two.

``validate_response`` either returns the normalized response dict or raises
``ResponseValidationError``; there is no partial acceptance.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from superoptimised.models.base import QuestionType
from superoptimised.utils.exceptions import QuestionConfigError, ResponseValidationError

logger = logging.getLogger(__name__)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class _StrictCamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


# ---------------------------------------------------------------------------
# Configuration models
# ---------------------------------------------------------------------------

class ChoiceOption(_CamelModel):
    """Option or ranking item. Plain strings are accepted and used as both id and label."""

    id: str = Field(min_length=1)
    label: str

    @model_validator(mode="before")
    @classmethod
    def _from_plain_value(cls, value):
        if isinstance(value, str):
            return {"id": value, "label": value}
        if isinstance(value, dict) and "id" in value and "label" not in value:
            return {**value, "label": str(value["id"])}
        return value


def _require_unique_ids(items: list[ChoiceOption], what: str) -> list[ChoiceOption]:
    ids = [item.id for item in items]
    if len(ids) != len(set(ids)):
        raise ValueError(f"{what} ids must be unique")
    return items


class BinaryConfig(_CamelModel):
    option_a: str = Field(min_length=1)
    option_b: str = Field(min_length=1)


class MultiChoiceConfig(_CamelModel):
    options: list[ChoiceOption] = Field(min_length=2)
    max_selections: Optional[int] = None

    @field_validator("options")
    @classmethod
    def _unique_options(cls, value):
        return _require_unique_ids(value, "option")

    @model_validator(mode="after")
    def _check_max_selections(self):
        if self.max_selections is None:
            self.max_selections = len(self.options)
        if self.max_selections < 1:
            raise ValueError("maxSelections must be at least 1")
        if self.max_selections > len(self.options):
            raise ValueError("maxSelections cannot exceed the number of options")
        return self

    @property
    def option_ids(self) -> set[str]:
        return {option.id for option in self.options}


class RatingScaleConfig(_CamelModel):
    min: Union[StrictInt, StrictFloat] = 1
    max: Union[StrictInt, StrictFloat] = 5
    labels: Optional[Union[dict[str, str], list[str]]] = None

    @model_validator(mode="after")
    def _check_bounds(self):
        if not (math.isfinite(self.min) and math.isfinite(self.max)):
            raise ValueError("min and max must be finite numbers")
        if self.min >= self.max:
            raise ValueError("min must be less than max")
        return self


class TextResponseConfig(_CamelModel):
    max_length: int = Field(default=1000, ge=1)
    multiline: bool = False
    placeholder: Optional[str] = None


class RankingConfig(_CamelModel):
    items: list[ChoiceOption] = Field(min_length=2)

    @field_validator("items")
    @classmethod
    def _unique_items(cls, value):
        return _require_unique_ids(value, "item")

    @property
    def item_ids(self) -> set[str]:
        return {item.id for item in self.items}


class AbVariant(_CamelModel):
    label: str
    description: Optional[str] = None
    image_url: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_label(cls, value):
        if isinstance(value, str):
            return {"label": value}
        return value


class AbTestConfig(_CamelModel):
    option_a: AbVariant
    option_b: AbVariant


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class BinaryResponse(_StrictCamelModel):
    selected_option: Union[StrictBool, Literal["A", "B"]]

    @field_validator("selected_option")
    @classmethod
    def _normalize_bool(cls, value):
        if isinstance(value, bool):
            return "A" if value else "B"
        return value


class MultiChoiceResponse(_StrictCamelModel):
    selected_options: list[StrictStr]


class RatingScaleResponse(_StrictCamelModel):
    rating: Union[StrictInt, StrictFloat]


class TextResponse(_StrictCamelModel):
    text: StrictStr


class RankingResponse(_StrictCamelModel):
    ranking: list[StrictStr]


class AbTestResponse(_StrictCamelModel):
    selected_option: Literal["variant_a", "variant_b"]


# ---------------------------------------------------------------------------
# Constraint checks linking config and response
# ---------------------------------------------------------------------------

def _reject(message: str, field: str, constraint: str):
    raise ResponseValidationError(message, field=field, constraint=constraint)


def _check_binary(config: BinaryConfig, response: BinaryResponse) -> None:
    return None


def _check_multi_choice(config: MultiChoiceConfig, response: MultiChoiceResponse) -> None:
    selected = response.selected_options
    if not selected:
        _reject("At least one option must be selected", "selectedOptions", "min_selections")
    if len(selected) != len(set(selected)):
        _reject("Selected options must not repeat", "selectedOptions", "duplicate_selection")
    if len(selected) > config.max_selections:
        _reject(
            f"At most {config.max_selections} options may be selected",
            "selectedOptions",
            "max_selections",
        )
    unknown = [option for option in selected if option not in config.option_ids]
    if unknown:
        _reject(f"Unknown option(s): {', '.join(unknown)}", "selectedOptions", "invalid_option")


def _check_rating_scale(config: RatingScaleConfig, response: RatingScaleResponse) -> None:
    rating = response.rating
    if not math.isfinite(rating):
        _reject("Rating must be a finite number", "rating", "invalid_number")
    if rating < config.min or rating > config.max:
        _reject(f"Rating must be between {config.min} and {config.max}", "rating", "out_of_range")


def _check_text(config: TextResponseConfig, response: TextResponse) -> None:
    text = response.text
    if len(text) > config.max_length:
        _reject(f"Text must be at most {config.max_length} characters", "text", "max_length")
    if not config.multiline and ("\n" in text or "\r" in text):
        _reject("Line breaks are not allowed for this question", "text", "multiline")


def _check_ranking(config: RankingConfig, response: RankingResponse) -> None:
    ranking = response.ranking
    if len(ranking) != len(set(ranking)):
        _reject("Ranking must not contain duplicate items", "ranking", "not_permutation")
    if len(ranking) != len(config.items) or set(ranking) != config.item_ids:
        _reject("Ranking must include every item exactly once", "ranking", "not_permutation")


def _check_ab_test(config: AbTestConfig, response: AbTestResponse) -> None:
    return None


@dataclass(frozen=True)
class QuestionTypeDefinition:
    config_model: type[BaseModel]
    response_model: type[BaseModel]
    check: Callable[[Any, Any], None]


QUESTION_TYPES: dict[QuestionType, QuestionTypeDefinition] = {
    QuestionType.BINARY: QuestionTypeDefinition(BinaryConfig, BinaryResponse, _check_binary),
    QuestionType.MULTI_CHOICE: QuestionTypeDefinition(MultiChoiceConfig, MultiChoiceResponse, _check_multi_choice),
    QuestionType.RATING_SCALE: QuestionTypeDefinition(RatingScaleConfig, RatingScaleResponse, _check_rating_scale),
    QuestionType.TEXT_RESPONSE: QuestionTypeDefinition(TextResponseConfig, TextResponse, _check_text),
    QuestionType.RANKING: QuestionTypeDefinition(RankingConfig, RankingResponse, _check_ranking),
    QuestionType.AB_TEST: QuestionTypeDefinition(AbTestConfig, AbTestResponse, _check_ab_test),
}


def _resolve_type(question_type: QuestionType | str) -> Optional[QuestionTypeDefinition]:
    try:
        return QUESTION_TYPES[QuestionType(question_type)]
    except ValueError:
        return None


def _describe_validation_error(exc: ValidationError) -> tuple[str, Optional[str], str]:
    error = exc.errors()[0]
    loc = error.get("loc", ())
    field = str(loc[0]) if loc else None
    if error.get("type") == "missing":
        return f"Missing required field '{field}'", field, "missing_field"
    if error.get("type") == "extra_forbidden":
        return f"Unexpected field '{field}'", field, "unexpected_field"
    if field:
        return f"Invalid value for '{field}': {error.get('msg')}", field, "invalid_type"
    return f"Invalid response: {error.get('msg')}", None, "invalid_type"


def parse_config(question_type: QuestionType | str, question_data: Any) -> BaseModel:
    """Validate admin-supplied configuration for a question type."""
    definition = _resolve_type(question_type)
    if definition is None:
        raise QuestionConfigError(f"Unsupported question type: {question_type}")
    if not isinstance(question_data, dict):
        raise QuestionConfigError("Question configuration must be an object")
    try:
        return definition.config_model.model_validate(question_data)
    except ValidationError as exc:
        message, _, _ = _describe_validation_error(exc)
        raise QuestionConfigError(f"Invalid {QuestionType(question_type).value} configuration: {message}") from exc


def normalize_config(question_type: QuestionType | str, question_data: Any) -> dict:
    """Validated configuration as the camelCase dict stored on the question."""
    return parse_config(question_type, question_data).model_dump(by_alias=True, exclude_none=True)


def validate_response(question_type: QuestionType | str, question_data: Any, response_data: Any) -> dict:
    """Check ``response_data`` against a question's type and configuration.

    Returns:
        Normalized response payload (camelCase keys) ready to persist.

    Raises:
        ResponseValidationError: naming the violated field and constraint.
        QuestionConfigError: if the stored configuration itself is invalid.
    """
    definition = _resolve_type(question_type)
    if definition is None:
        raise ResponseValidationError(
            f"Unsupported question type: {question_type}",
            field="questionType",
            constraint="unknown_type",
        )
    config = parse_config(question_type, question_data)

    if not isinstance(response_data, dict):
        raise ResponseValidationError(
            "Response must be an object", field=None, constraint="invalid_type"
        )

    try:
        response = definition.response_model.model_validate(response_data)
    except ValidationError as exc:
        message, field, constraint = _describe_validation_error(exc)
        raise ResponseValidationError(message, field=field, constraint=constraint) from exc

    definition.check(config, response)
    return response.model_dump(by_alias=True)
