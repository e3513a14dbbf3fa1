from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


SourceType = Literal["openapiv3"]
SUPPORTED_SCHEMA_VERSIONS: tuple[str, ...] = ("1.0.0",)


class SourceDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: SourceType
    # filesystem path or http(s) URL of the asset
    location: str = Field(min_length=1)


class Manifest(BaseModel):
    model_config = ConfigDict(frozen=True)

    schema_version: str
    sources: tuple[SourceDescriptor, ...]


class DeployedAsset(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    name: str | None = None
    content_type: str | None = None


class DeploymentResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    status: str | None = None
    openapiv3_asset_count: int | None = None
    openapiv3_assets: list[DeployedAsset] = Field(default_factory=list)
