"""Reusable base models for the oracle."""

from typing import Any, Self

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    A base model that converts field names to camel case when serializing.

    For example, the field name `start_epoch` in a Python model will be
    represented as `startEpoch` when it is serialized to JSON.

    The status endpoint serializes its payload through this convention.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_default=True,
        arbitrary_types_allowed=True,
    )

    def copy(self: Self, **kwargs: Any) -> Self:
        """Create a copy of the model with the updated fields that are validated."""
        return self.__class__(**(self.model_dump(exclude_unset=True) | kwargs))


class StrictBaseModel(CamelModel):
    """A strict, immutable pydantic base model."""

    model_config = CamelModel.model_config | {
        "extra": "forbid",
        "frozen": True,
        "strict": True,
    }


class WireModel(BaseModel):
    """
    An immutable model for records received from external data sources.

    Upstream payloads carry many more fields than the oracle needs, so unknown
    keys are ignored. Fields declare the upstream spelling as their alias and
    can also be populated by their Python name (fixtures use either).
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )
