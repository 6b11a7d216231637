"""Data contracts for provider discovery."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ProviderMetadataOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str
    configured: bool
    features: list[str] = Field(default_factory=list)
    max_participants: int = Field(..., ge=0)
    supported_platforms: list[str] = Field(default_factory=list)


class ProviderOut(BaseModel):
    name: str = Field(..., description="Registry key used in the create request")
    metadata: ProviderMetadataOut
    configured: bool


class ProviderListResponse(BaseModel):
    providers: list[ProviderOut]
    default: str | None = Field(default=None, description="Provider used when none is requested")
