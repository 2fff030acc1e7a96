"""Actor schema - the identity performing an operation."""

from typing import List

from pydantic import BaseModel, Field, field_validator


class Actor(BaseModel):
    """
    User on whose behalf a workflow operation runs.

    Supplied by the identity provider; roles are an opaque capability set
    interpreted by stageflow.core.permissions.
    """

    id: str = Field(..., min_length=1)
    name: str = ""
    roles: List[str] = Field(default_factory=list)

    @field_validator("roles", mode="before")
    @classmethod
    def split_roles(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [r.strip() for r in value.split(",") if r.strip()]
        return value

    @property
    def display_name(self) -> str:
        return self.name or self.id
