"""Stage payload shapes accepted by the flow engine."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import Field

from stagekit.schemas.base import StrictSchemaModel


class SelectionData(StrictSchemaModel):
    """Option ids picked on a selection stage."""

    kind: Literal["selection"] = "selection"
    selected_ids: list[str] = Field(default_factory=list)

    @classmethod
    def single(cls, option_id: str) -> "SelectionData":
        return cls(selected_ids=[option_id])


class MediaStageData(StrictSchemaModel):
    """Captured media for a stage, as paths relative to a managed media root."""

    kind: Literal["media"] = "media"
    images: list[str] = Field(default_factory=list)
    videos: list[str] = Field(default_factory=list)
    text_prompt: str = ""

    @property
    def total_items(self) -> int:
        return len(self.images) + len(self.videos)

    def media_paths(self) -> list[str]:
        return [*self.images, *self.videos]


class ProfileData(StrictSchemaModel):
    """Free-form profile answers keyed by field name."""

    kind: Literal["profile"] = "profile"
    fields: dict[str, Any] = Field(default_factory=dict)


StageData = Annotated[
    Union[SelectionData, MediaStageData, ProfileData],
    Field(discriminator="kind"),
]
