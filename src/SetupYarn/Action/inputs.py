"""Action inputs, read from the ``INPUT_*`` variables the runner exports."""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ActionInputs(BaseSettings):
    """Inputs declared by the action."""

    version: str = Field(default="", description="Yarn version to set; empty keeps Corepack's")
    cache: bool = Field(default=False, description="Restore and save the Yarn install cache")

    model_config = SettingsConfigDict(env_prefix="INPUT_", case_sensitive=False, extra="ignore")

    @field_validator("version", mode="before")
    @classmethod
    def _strip_version(cls, value: object) -> str:
        return str(value or "").strip()

    @field_validator("cache", mode="before")
    @classmethod
    def _parse_cache(cls, value: object) -> bool:
        if isinstance(value, bool):
            return value
        return str(value or "").strip().lower() == "true"


def get_inputs() -> ActionInputs:
    return ActionInputs()


__all__ = ["ActionInputs", "get_inputs"]
