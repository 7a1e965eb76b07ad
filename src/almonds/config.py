"""Issuer profile loaded from a JSON file.

An issuer profile bundles the three values needed to mint and check a
class of Almonds: the secret key, the generation and the type. Keeping
them together avoids verifying with one generation and minting with
another.

Example file::

    {"secret_key": "this_is_a_secret", "generation": 1, "almond_type": "login"}
"""
from __future__ import annotations

from pathlib import Path
from typing import Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AlmondConfig(BaseModel):
    """Secret key, generation and type for one class of Almonds."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    secret_key: str = Field(min_length=1, repr=False)
    generation: int = Field(default=1, ge=0, le=255)
    almond_type: str

    @field_validator("almond_type")
    @classmethod
    def reject_newline(cls, value: str) -> str:
        if "\n" in value:
            raise ValueError("almond_type must not contain a newline")
        return value

    @property
    def secret_bytes(self) -> bytes:
        return self.secret_key.encode("utf-8")

    @property
    def type_bytes(self) -> bytes:
        return self.almond_type.encode("utf-8")


def load_config(path: Union[str, Path]) -> AlmondConfig:
    """Read and validate an :class:`AlmondConfig` from a JSON file.

    Raises
    ------
    OSError
        When the file cannot be read.
    pydantic.ValidationError
        When the contents are not a valid profile.
    """
    return AlmondConfig.model_validate_json(Path(path).read_text(encoding="utf-8"))
