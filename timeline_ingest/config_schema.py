from __future__ import annotations

import re
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_HOST_RE = re.compile(r"^[A-Za-z0-9.-]+(:[0-9]+)?$")

PositiveInt = Annotated[int, Field(ge=1)]


class FetchConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    token_env: str = "APIFY_TOKEN"
    actor_id: str = "timeline/home-latest"
    count: PositiveInt = 100
    extra_input: dict[str, Any] = Field(default_factory=dict)

    @field_validator("token_env")
    @classmethod
    def _token_env_must_be_valid(cls, v: str) -> str:
        name = (v or "").strip()
        if not _ENV_NAME_RE.fullmatch(name):
            raise ValueError("must be a valid environment variable name")
        return name

    @field_validator("actor_id")
    @classmethod
    def _actor_id_must_be_set(cls, v: str) -> str:
        actor = (v or "").strip()
        if not actor:
            raise ValueError("must be non-empty")
        return actor

    @field_validator("extra_input")
    @classmethod
    def _count_is_reserved(cls, v: dict[str, Any]) -> dict[str, Any]:
        if "count" in v:
            raise ValueError("'count' is set from fetch.count")
        return v


class FiltersConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    include_referenced: bool = True
    include_retweet_text: bool = True
    max_age_days: float | None = Field(default=None, gt=0)


class SinkConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    mode: Literal["relational", "snapshot"] = "snapshot"
    database_path: str = "timeline.sqlite"
    snapshot_dir: str = "tweets"

    @model_validator(mode="after")
    def _paths_non_empty(self) -> "SinkConfig":
        if self.mode == "relational" and not self.database_path.strip():
            raise ValueError("database_path must be non-empty for relational mode")
        if self.mode == "snapshot" and not self.snapshot_dir.strip():
            raise ValueError("snapshot_dir must be non-empty for snapshot mode")
        return self


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    fetch: FetchConfig = Field(default_factory=FetchConfig)
    filters: FiltersConfig = Field(default_factory=FiltersConfig)
    sink: SinkConfig = Field(default_factory=SinkConfig)
    post_host: str = "x.com"

    @field_validator("post_host")
    @classmethod
    def _host_must_be_bare(cls, v: str) -> str:
        host = (v or "").strip().lower()
        if not _HOST_RE.fullmatch(host):
            raise ValueError("must be a bare host name such as 'x.com'")
        return host
