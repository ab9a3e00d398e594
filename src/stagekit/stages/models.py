"""Stage variants and their validation rules."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import Field, model_validator

from stagekit.schemas.base import FrozenSchemaModel
from stagekit.schemas.enums import MediaType, StageKind, ValidationCode
from stagekit.stages.payloads import MediaStageData, ProfileData, SelectionData
from stagekit.stages.validation import ValidationResult, reason


class BaseStage(FrozenSchemaModel):
    """Fields shared by every stage variant."""

    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    subtitle: str = ""
    is_required: bool = True
    can_skip: bool = False
    can_go_back: bool = True
    shows_header: bool = True

    @property
    def stage_kind(self) -> StageKind:
        return StageKind(getattr(self, "kind"))

    def validate_data(self, data: Any) -> ValidationResult:
        """Validate a candidate payload. Never raises."""
        del data
        return ValidationResult.valid()


class SelectionOption(FrozenSchemaModel):
    """One choice offered by a selection stage."""

    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    subtitle: str | None = None
    icon: str | None = None


class SelectionStage(BaseStage):
    """Pick one option (or several when multi_select is set)."""

    kind: Literal["selection"] = "selection"
    options: tuple[SelectionOption, ...] = ()
    multi_select: bool = False

    def validate_data(self, data: Any) -> ValidationResult:
        if data is None:
            if not self.is_required:
                return ValidationResult.valid()
            return ValidationResult.invalid(
                reason(ValidationCode.MISSING_DATA, "Please make a selection")
            )
        if not isinstance(data, SelectionData):
            return ValidationResult.invalid(
                reason(
                    ValidationCode.WRONG_DATA_TYPE,
                    "Selection stages expect selection data",
                    received=type(data).__name__,
                )
            )

        selected = [option_id for option_id in data.selected_ids if option_id.strip()]
        if not selected or len(selected) != len(data.selected_ids):
            message = (
                "Please make at least one selection"
                if self.multi_select
                else "Please make a selection"
            )
            return ValidationResult.invalid(
                reason(ValidationCode.EMPTY_SELECTION, message)
            )
        if not self.multi_select and len(selected) > 1:
            return ValidationResult.invalid(
                reason(
                    ValidationCode.TOO_MANY_ITEMS,
                    "Only one selection is allowed",
                    selected=len(selected),
                )
            )

        known = {option.id for option in self.options}
        if known:
            unknown = sorted(set(selected) - known)
            if unknown:
                return ValidationResult.invalid(
                    reason(
                        ValidationCode.UNKNOWN_OPTION,
                        "Selection contains unknown options",
                        unknown=unknown,
                    )
                )
        return ValidationResult.valid()


class MediaCaptureStage(BaseStage):
    """Capture between min_items and max_items images and/or videos."""

    kind: Literal["media_capture"] = "media_capture"
    media_types: frozenset[MediaType] = frozenset({MediaType.IMAGE, MediaType.VIDEO})
    min_items: int = Field(default=1, ge=0)
    max_items: int = Field(default=5, ge=0)
    max_images: int | None = Field(default=None, ge=0)
    max_videos: int | None = Field(default=None, ge=0)
    instructions: str | None = None

    @model_validator(mode="after")
    def validate_limits(self) -> "MediaCaptureStage":
        if self.min_items > self.max_items:
            raise ValueError("min_items cannot exceed max_items")
        if not self.media_types:
            raise ValueError("media capture stages must allow at least one media type")
        return self

    @property
    def image_limit(self) -> int:
        return self.max_items if self.max_images is None else self.max_images

    @property
    def video_limit(self) -> int:
        return self.max_items if self.max_videos is None else self.max_videos

    def validate_data(self, data: Any) -> ValidationResult:
        if data is None:
            return ValidationResult.invalid(
                reason(ValidationCode.MISSING_DATA, "No media data provided")
            )
        if not isinstance(data, MediaStageData):
            return ValidationResult.invalid(
                reason(
                    ValidationCode.WRONG_DATA_TYPE,
                    "Media capture stages expect media data",
                    received=type(data).__name__,
                )
            )

        reasons = []
        if data.images and MediaType.IMAGE not in self.media_types:
            reasons.append(
                reason(
                    ValidationCode.MEDIA_TYPE_NOT_ALLOWED,
                    "Images are not accepted on this stage",
                    media_type=MediaType.IMAGE.value,
                )
            )
        if data.videos and MediaType.VIDEO not in self.media_types:
            reasons.append(
                reason(
                    ValidationCode.MEDIA_TYPE_NOT_ALLOWED,
                    "Videos are not accepted on this stage",
                    media_type=MediaType.VIDEO.value,
                )
            )

        total = data.total_items
        if total < self.min_items:
            reasons.append(
                reason(
                    ValidationCode.TOO_FEW_ITEMS,
                    f"Please add at least {self.min_items} media item(s)",
                    minimum=self.min_items,
                    actual=total,
                )
            )
        if total > self.max_items:
            reasons.append(
                reason(
                    ValidationCode.TOO_MANY_ITEMS,
                    f"Maximum {self.max_items} media items allowed",
                    maximum=self.max_items,
                    actual=total,
                )
            )
        if len(data.images) > self.image_limit:
            reasons.append(
                reason(
                    ValidationCode.TOO_MANY_IMAGES,
                    f"Maximum {self.image_limit} image(s) allowed",
                    maximum=self.image_limit,
                    actual=len(data.images),
                )
            )
        if len(data.videos) > self.video_limit:
            reasons.append(
                reason(
                    ValidationCode.TOO_MANY_VIDEOS,
                    f"Maximum {self.video_limit} video(s) allowed",
                    maximum=self.video_limit,
                    actual=len(data.videos),
                )
            )

        if reasons:
            return ValidationResult.invalid(*reasons)
        return ValidationResult.valid()


class ProfileStage(BaseStage):
    """Collect a profile whose required fields must all be filled in."""

    kind: Literal["profile"] = "profile"
    required_fields: tuple[str, ...] = ()

    def validate_data(self, data: Any) -> ValidationResult:
        if data is None:
            return ValidationResult.invalid(
                reason(ValidationCode.MISSING_DATA, "Please complete your profile")
            )
        if not isinstance(data, ProfileData):
            return ValidationResult.invalid(
                reason(
                    ValidationCode.WRONG_DATA_TYPE,
                    "Profile stages expect profile data",
                    received=type(data).__name__,
                )
            )

        missing = [name for name in self.required_fields if _is_blank(data.fields.get(name))]
        if missing:
            return ValidationResult.invalid(
                *[
                    reason(
                        ValidationCode.MISSING_FIELD,
                        f"{name.replace('_', ' ').capitalize()} is required",
                        field=name,
                    )
                    for name in missing
                ]
            )
        return ValidationResult.valid()


class ProcessingStage(BaseStage):
    """Waiting stage shown while an analysis runs. Always valid."""

    kind: Literal["processing"] = "processing"
    is_required: Literal[True] = True
    can_skip: Literal[False] = False
    can_go_back: Literal[False] = False
    processing_message: str = "Processing..."
    shows_cancel_button: bool = False


class ResultsStage(BaseStage):
    """Terminal stage presenting the analysis outcome. Always valid."""

    kind: Literal["results"] = "results"
    is_required: Literal[True] = True
    can_skip: Literal[False] = False
    can_go_back: Literal[False] = False


class CustomStage(BaseStage):
    """Caller-rendered stage with no payload requirements."""

    kind: Literal["custom"] = "custom"
    is_required: bool = False
    can_go_back: bool = False
    shows_header: bool = False
    shows_progress: bool = False


Stage = Annotated[
    Union[
        SelectionStage,
        MediaCaptureStage,
        ProfileStage,
        ProcessingStage,
        ResultsStage,
        CustomStage,
    ],
    Field(discriminator="kind"),
]


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return not value
    return False
