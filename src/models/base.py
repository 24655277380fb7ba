"""Shared Pydantic base models and utilities."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class HealthStatsBase(BaseModel):
    """Base model with shared config for all healthstats schemas."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class CamelCaseRow(HealthStatsBase):
    """Input row accepting both ``snake_case`` and ``camelCase`` keys."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        alias_generator=to_camel,
        extra="ignore",
    )
