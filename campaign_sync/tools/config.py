"""
Interface to configuration as persisted in .yaml file, and settings of a
single sync invocation.
"""
from __future__ import annotations

from logging import Logger
from pathlib import Path
from typing import Any, Self

from pydantic import BaseModel, Field, field_validator, model_validator

from ..core import Session
from .yaml_model import BaseYamlModel

__all__ = [
    "Config",
    "InstanceConfig",
    "SyncSettings",
]


class Config(BaseYamlModel):
    """
    Encapsulates configuration for use in tools.
    """

    default_instance: str | None = None
    """
    Instance to use if none is given on the command line.
    """

    instances: dict[str, InstanceConfig]
    """
    Mapping of instance names to configs.
    """

    @model_validator(mode="after")
    def validate_default_instance(self) -> Self:
        if self.default_instance and self.default_instance not in self.instances:
            raise ValueError(
                f"default instance '{self.default_instance}' is not configured"
            )
        return self

    def get_instance(self, instance_name: str | None) -> InstanceConfig | None:
        name = instance_name or self.default_instance
        return self.instances.get(name) if name else None


class InstanceConfig(BaseModel):
    """
    Encapsulates connection info for a Campaign instance.
    """

    host: str
    username: str
    password: str

    @field_validator("host")
    @classmethod
    def validate_host(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"host must be an http(s) url: '{value}'")
        return value.rstrip("/")

    def create_session(self, *, logger: Logger) -> Session:
        """
        Get logged-on session from this instance's fields.
        """
        return Session(
            self.host,
            self.username,
            self.password,
            logger=logger,
        )


class SyncSettings(BaseModel):
    """
    Settings of a single download or upload, as parsed from the command line.
    """

    schema_id: str | None = None
    output_dir: Path | None = None
    conditions: list[str] = Field(default_factory=list)
    schema_subdirectory: bool = False
    upload_list: Path | None = None
    dry_run: bool = False

    @field_validator("conditions", mode="before")
    @classmethod
    def validate_conditions(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value

    @model_validator(mode="after")
    def validate_mode(self) -> Self:
        if self.output_dir is None and self.upload_list is None:
            raise ValueError(
                "Either upload or download parameters must be specified."
            )
        if self.output_dir is not None and self.schema_id is None:
            raise ValueError("a schema is required to download")
        return self
