"""Pydantic models for catalog data and the YAML search configuration."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PositiveInt,
    ValidationError,
    field_validator,
    model_validator,
)


SMART_SEARCH_TEMPLATE = "smart_search"


# ---------------------------------------------------------------------------
# Catalog data
# ---------------------------------------------------------------------------


class CatalogItem(BaseModel):
    """A demo site listed in a consultant catalog."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    title: str
    description: str = ""
    category_id: Optional[str] = Field(default=None, alias="categoryId")
    link: Optional[str] = None
    media_url: Optional[str] = Field(default=None, alias="mediaUrl")
    media_type: Literal["image", "video"] = Field(default="image", alias="mediaType")
    gallery_urls: List[str] = Field(default_factory=list, alias="galleryUrls")

    @field_validator("description", mode="before")
    @classmethod
    def coerce_missing_description(cls, value: Any) -> Any:
        return "" if value is None else value


class Category(BaseModel):
    """Catalog segment used by the category filter."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class AcquisitionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"


class Acquisition(BaseModel):
    """A sales lead recorded when a client requests a demo site."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    site_id: str = Field(alias="siteId")
    site_title: str = Field(alias="siteTitle")
    consultant_id: str = Field(alias="consultantId")
    client_name: str = Field(alias="clientName")
    client_phone: str = Field(alias="clientPhone")
    client_cpf: str = Field(alias="clientCpf")
    timestamp: datetime
    status: AcquisitionStatus = AcquisitionStatus.PENDING
    comment: str = ""
    attachment_url: Optional[str] = Field(default=None, alias="attachmentUrl")


# ---------------------------------------------------------------------------
# Search configuration
# ---------------------------------------------------------------------------


class RetryConfig(BaseModel):
    """Retry policy for remote matching calls."""

    max_attempts: PositiveInt = 1
    backoff: float = Field(default=0.0, ge=0.0)


class TimeoutConfig(BaseModel):
    """Timeout expressed in seconds."""

    seconds: float = Field(..., gt=0.0)


class ProviderConfig(BaseModel):
    """Remote semantic-matching provider."""

    kind: Literal["gemini"] = "gemini"
    model: str = "gemini-2.5-flash"
    api_key: Optional[str] = None
    temperature: float = Field(default=0.0, ge=0.0)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    timeout: TimeoutConfig = Field(default_factory=lambda: TimeoutConfig(seconds=8.0))


class SearchSettings(BaseModel):
    """Debounce and supersede behavior of search sessions."""

    debounce_seconds: float = Field(default=0.6, gt=0.0)
    cancel_superseded: bool = False


class PromptsConfig(BaseModel):
    """Prompt partials and templates."""

    partials: Dict[str, str] = Field(default_factory=dict)
    templates: Dict[str, Dict[str, str]] = Field(default_factory=dict)

    @field_validator("templates")
    @classmethod
    def ensure_roles(cls, value: Dict[str, Dict[str, str]]) -> Dict[str, Dict[str, str]]:
        for name, roles in value.items():
            unknown = set(roles) - {"system", "user"}
            if unknown:
                raise ValueError(f"prompt template '{name}' has unknown roles {sorted(unknown)}")
            if not roles.get("user"):
                raise ValueError(f"prompt template '{name}' must define a 'user' message")
        return value


class SearchConfig(BaseModel):
    """Root configuration object."""

    schema_version: PositiveInt = 1
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    search: SearchSettings = Field(default_factory=SearchSettings)
    prompts: PromptsConfig = Field(default_factory=PromptsConfig)

    @model_validator(mode="after")
    def ensure_smart_search_template(self) -> "SearchConfig":
        if self.prompts.templates and SMART_SEARCH_TEMPLATE not in self.prompts.templates:
            raise ValueError(f"prompts.templates must define '{SMART_SEARCH_TEMPLATE}'")
        return self


def load_config(data: Optional[Dict[str, Any]]) -> SearchConfig:
    """Parse a raw dict (typically loaded from YAML) into a SearchConfig."""

    try:
        return SearchConfig.model_validate(data or {})
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc
