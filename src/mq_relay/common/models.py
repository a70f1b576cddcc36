from datetime import datetime, timezone
from typing import Iterator, Tuple
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class RelayConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    routing_key: str = Field(min_length=1)
    target_url: str = Field(min_length=1)
    index: int = Field(default=0, ge=0)  # 0 is the legacy single relay

    @field_validator("target_url")
    @classmethod
    def check_target_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Invalid target URL: {value}")
        return value

    @property
    def label(self) -> str:
        return f"[Relay {self.index} - {self.routing_key}]"

    @property
    def metric_label(self) -> str:
        return f"{self.index}-{self.routing_key}"


class RelayConfigSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    relays: Tuple[RelayConfig, ...]

    @model_validator(mode="after")
    def check_relays(self) -> "RelayConfigSet":
        if not self.relays:
            raise ValueError("At least one relay configuration is required")
        indices = [relay.index for relay in self.relays]
        if len(set(indices)) != len(indices):
            raise ValueError(f"Relay indices must be unique: {indices}")
        return self

    def __iter__(self) -> Iterator[RelayConfig]:
        return iter(self.relays)

    def __len__(self) -> int:
        return len(self.relays)


class Delivery(BaseModel):
    body: bytes
    routing_key: str = ""
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
