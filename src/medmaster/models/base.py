"""Shared model configuration for persisted and API-facing payloads."""

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def _as_local_naive(value: datetime) -> datetime:
    """Normalise aware timestamps to naive local time.

    Stored records may carry UTC ``Z`` timestamps; all calendar arithmetic
    happens in local time.
    """
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


LocalDatetime = Annotated[datetime, AfterValidator(_as_local_naive)]


class CamelModel(BaseModel):
    """Model serialised with camelCase keys, populated by either name."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )
