"""Authenticated user identity."""

from pydantic import Field

from medmaster.models.base import CamelModel


class User(CamelModel):
    id: str = Field(min_length=1)
    name: str
    email: str
    avatar: str | None = None
