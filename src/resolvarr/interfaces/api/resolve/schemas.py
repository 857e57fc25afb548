"""Request bodies for the resolve and fallback endpoints."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from resolvarr.domain.entities.media import ContentRequest, ResolvedLink


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContentRequestBody(_CamelModel):
    content_id: str = Field(min_length=1)
    media_type: Literal["movie", "episode"]
    title: str = Field(min_length=1)
    year: Optional[int] = None
    season: Optional[int] = Field(default=None, ge=0)
    episode: Optional[int] = Field(default=None, ge=0)
    runtime_minutes: Optional[float] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _episode_needs_numbers(self) -> "ContentRequestBody":
        if self.media_type == "episode" and (self.season is None or self.episode is None):
            raise ValueError("episode requests need season and episode")
        return self

    def to_domain(self) -> ContentRequest:
        return ContentRequest(
            content_id=self.content_id,
            media_type=self.media_type,
            title=self.title,
            year=self.year,
            season=self.season,
            episode=self.episode,
            runtime_minutes=self.runtime_minutes,
        )


class FallbackRequestBody(_CamelModel):
    content_id: str = Field(min_length=1)
    media_type: Literal["movie", "episode"]
    title: Optional[str] = None
    year: Optional[int] = None
    season: Optional[int] = None
    episode: Optional[int] = None
    runtime_minutes: Optional[float] = Field(default=None, gt=0)
    current_bitrate: Optional[float] = Field(default=None, gt=0)
    current_file_name: Optional[str] = None

    def to_domain(self, recalled: ResolvedLink | None = None) -> ContentRequest | None:
        """The content to search, completed from the *recalled* cache row.

        Clients may send only the key (``contentId``, ``mediaType``,
        ``season``, ``episode``); title, year and runtime then come from the
        row that resolved it. None when no title is known either way.
        """
        known = recalled.to_request() if recalled is not None else None
        if known is None:
            if not self.title:
                return None
            known = ContentRequest(
                content_id=self.content_id, media_type=self.media_type, title=self.title
            )
        return ContentRequest(
            content_id=self.content_id,
            media_type=self.media_type,
            title=self.title or known.title,
            year=self.year if self.year is not None else known.year,
            season=self.season,
            episode=self.episode,
            runtime_minutes=self.runtime_minutes or known.runtime_minutes,
        )
