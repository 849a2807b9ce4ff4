from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class AddServerRequest(BaseModel):
    address: str = Field(..., description="IP address, optionally with port and/or %interface scope")
    # System servers come from the external resolv.conf only.
    origin: Literal["link", "fallback"] = Field("link", description="link|fallback")


class IngestionRequest(BaseModel):
    enabled: bool


class ServerOut(BaseModel):
    address: str
    origin: str
    active: bool = False


class StateOut(BaseModel):
    servers: list[ServerOut]
    search_domains: list[str]
    resolv_conf_mtime: int | None = None
    read_resolv_conf: bool
    generation: int
    cache_flushes: int
