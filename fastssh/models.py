from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .validation import validate_host, validate_port, validate_username


class ServerRecord(BaseModel):
    """Non-secret half of a saved server, as persisted in servers.json."""

    model_config = ConfigDict(populate_by_name=True)

    host: str
    user: str
    port: int = 22
    auth_type: Literal["key"] = Field(default="key", alias="authType")
    key_path: str = Field(alias="keyPath")

    @field_validator("host")
    @classmethod
    def _check_host(cls, value: str) -> str:
        return validate_host(value)

    @field_validator("user")
    @classmethod
    def _check_user(cls, value: str) -> str:
        return validate_username(value)

    @field_validator("port", mode="before")
    @classmethod
    def _check_port(cls, value) -> int:
        return validate_port(value)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)


class HydratedServerRecord(ServerRecord):
    """ServerRecord plus the passphrase resolved from the secret store at read time."""

    passphrase: str | None = None

    def to_record(self) -> ServerRecord:
        return ServerRecord.model_validate(self.model_dump(exclude={"passphrase"}))
