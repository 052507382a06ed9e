from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

Scope = Literal["full", "additive"]
IntensityLevel = Literal["subtle", "moderate", "dramatic"]
OptimizationGoal = Literal[
    "energy_efficiency",
    "color_accuracy",
    "dramatic_impact",
    "technical_simplicity",
]

DEFAULT_MIN_VALUE = 0
DEFAULT_MAX_VALUE = 255


class FixtureType(str, Enum):
    LED_PAR = "LED_PAR"
    MOVING_HEAD = "MOVING_HEAD"
    STROBE = "STROBE"
    DIMMER = "DIMMER"
    OTHER = "OTHER"


class ChannelType(str, Enum):
    INTENSITY = "INTENSITY"
    RED = "RED"
    GREEN = "GREEN"
    BLUE = "BLUE"
    WHITE = "WHITE"
    AMBER = "AMBER"
    UV = "UV"
    PAN = "PAN"
    TILT = "TILT"
    ZOOM = "ZOOM"
    FOCUS = "FOCUS"
    IRIS = "IRIS"
    GOBO = "GOBO"
    COLOR_WHEEL = "COLOR_WHEEL"
    EFFECT = "EFFECT"
    STROBE = "STROBE"
    MACRO = "MACRO"
    OTHER = "OTHER"


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _coerce_enum(enum_cls, value: Any) -> Any:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        key = value.strip().upper().replace("-", "_").replace(" ", "_")
        if key in enum_cls.__members__:
            return enum_cls[key]
    return enum_cls.OTHER


class InstanceChannel(CamelModel):
    id: Optional[str] = None
    offset: int = Field(ge=0)
    name: str = ""
    type: ChannelType = ChannelType.OTHER
    min_value: Optional[int] = Field(default=None, alias="minValue")
    max_value: Optional[int] = Field(default=None, alias="maxValue")
    default_value: Optional[int] = Field(default=None, alias="defaultValue")

    @field_validator("type", mode="before")
    @classmethod
    def _known_channel_type(cls, value: Any) -> ChannelType:
        return _coerce_enum(ChannelType, value)

    def value_range(self) -> Tuple[int, int]:
        low = DEFAULT_MIN_VALUE if self.min_value is None else self.min_value
        high = DEFAULT_MAX_VALUE if self.max_value is None else self.max_value
        if low > high:
            low, high = high, low
        return low, high

    def clamp(self, value: int) -> int:
        low, high = self.value_range()
        return max(low, min(high, int(value)))


class FixtureInstance(CamelModel):
    id: str
    name: str = ""
    description: Optional[str] = None
    definition_id: Optional[str] = Field(default=None, alias="definitionId")
    manufacturer: str = ""
    model: str = ""
    type: FixtureType = FixtureType.OTHER
    mode_name: Optional[str] = Field(default=None, alias="modeName")
    channel_count: Optional[int] = Field(default=None, alias="channelCount")
    channels: List[InstanceChannel] = Field(default_factory=list)
    universe: Optional[int] = None
    start_channel: Optional[int] = Field(default=None, alias="startChannel")
    tags: List[str] = Field(default_factory=list)

    @field_validator("type", mode="before")
    @classmethod
    def _known_fixture_type(cls, value: Any) -> FixtureType:
        return _coerce_enum(FixtureType, value)

    @field_validator("tags", "channels", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    def channel_at(self, offset: int) -> Optional[InstanceChannel]:
        for channel in self.channels:
            if channel.offset == offset:
                return channel
        return None

    def has_tag(self, tag: str) -> bool:
        wanted = tag.strip().lower()
        return any(existing.strip().lower() == wanted for existing in self.tags)


class ChannelValue(CamelModel):
    offset: int
    value: int


class FixtureValue(CamelModel):
    fixture_id: str = Field(alias="fixtureId")
    channels: List[ChannelValue] = Field(default_factory=list)
    look_order: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("lookOrder", "sceneOrder", "look_order"),
        serialization_alias="lookOrder",
    )


class GeneratedLook(CamelModel):
    name: str
    description: str = ""
    fixture_values: List[FixtureValue] = Field(default_factory=list, alias="fixtureValues")
    reasoning: str = ""


class LookSummary(CamelModel):
    """A look as persisted by the lighting-control backend."""

    id: str
    name: str = ""
    description: Optional[str] = None
    fixture_values: List[FixtureValue] = Field(default_factory=list, alias="fixtureValues")


class RecommendationBundle(CamelModel):
    color_suggestions: List[str] = Field(default_factory=list, alias="colorSuggestions")
    intensity_levels: Dict[str, int] = Field(default_factory=dict, alias="intensityLevels")
    focus_areas: List[str] = Field(default_factory=list, alias="focusAreas")
    reasoning: str = ""
    matched_patterns: List[str] = Field(default_factory=list, alias="matchedPatterns")

    @field_validator("intensity_levels")
    @classmethod
    def _percent_bands(cls, value: Dict[str, int]) -> Dict[str, int]:
        return {band: max(0, min(100, int(level))) for band, level in value.items()}


class GeneratedCue(CamelModel):
    name: str
    cue_number: float = Field(alias="cueNumber")
    look_id: str = Field(validation_alias=AliasChoices("lookId", "sceneId", "look_id"), serialization_alias="lookId")
    fade_in_time: float = Field(ge=0, alias="fadeInTime")
    fade_out_time: float = Field(ge=0, alias="fadeOutTime")
    follow_time: Optional[float] = Field(default=None, ge=0, alias="followTime")
    notes: Optional[str] = None


class GeneratedCueSequence(CamelModel):
    name: str
    description: str = ""
    cues: List[GeneratedCue] = Field(default_factory=list)
    reasoning: str = ""


class ScriptScene(CamelModel):
    scene_number: str = Field(alias="sceneNumber")
    title: Optional[str] = None
    content: str = ""
    mood: str = "neutral"
    characters: List[str] = Field(default_factory=list)
    stage_directions: List[str] = Field(default_factory=list, alias="stageDirections")
    lighting_cues: List[str] = Field(default_factory=list, alias="lightingCues")
    time_of_day: Optional[str] = Field(default=None, alias="timeOfDay")
    location: Optional[str] = None


class ScriptAnalysis(CamelModel):
    scenes: List[ScriptScene] = Field(default_factory=list)
    characters: List[str] = Field(default_factory=list)
    settings: List[str] = Field(default_factory=list)
    overall_mood: str = Field(default="neutral", alias="overallMood")
    themes: List[str] = Field(default_factory=list)


class DesignPreferences(CamelModel):
    color_palette: List[str] = Field(default_factory=list, alias="colorPalette")
    mood: Optional[str] = None
    intensity: Optional[IntensityLevel] = None
    focus_areas: List[str] = Field(default_factory=list, alias="focusAreas")


class FixtureFilter(CamelModel):
    include_types: List[FixtureType] = Field(default_factory=list, alias="includeTypes")
    exclude_types: List[FixtureType] = Field(default_factory=list, alias="excludeTypes")
    include_tags: List[str] = Field(default_factory=list, alias="includeTags")

    def is_empty(self) -> bool:
        return not (self.include_types or self.exclude_types or self.include_tags)

    def matches(self, fixture: FixtureInstance) -> bool:
        if self.include_types and fixture.type not in self.include_types:
            return False
        if self.exclude_types and fixture.type in self.exclude_types:
            return False
        if self.include_tags and not any(fixture.has_tag(tag) for tag in self.include_tags):
            return False
        return True

    def apply(self, fixtures: List[FixtureInstance]) -> List[FixtureInstance]:
        return [fixture for fixture in fixtures if self.matches(fixture)]


class TransitionPreferences(CamelModel):
    default_fade_in: float = Field(default=3.0, ge=0, alias="defaultFadeIn")
    default_fade_out: float = Field(default=3.0, ge=0, alias="defaultFadeOut")
    follow_cues: bool = Field(default=False, alias="followCues")
    auto_advance: bool = Field(default=False, alias="autoAdvance")


class LookRequest(CamelModel):
    description: str = Field(min_length=1)
    script_context: Optional[str] = Field(default=None, alias="scriptContext")
    scope: Scope = "full"
    design_preferences: Optional[DesignPreferences] = Field(default=None, alias="designPreferences")
    fixture_filter: Optional[FixtureFilter] = Field(default=None, alias="fixtureFilter")


class FixtureUsageSuggestion(CamelModel):
    primary_fixtures: List[str] = Field(default_factory=list, alias="primaryFixtures")
    supporting_fixtures: List[str] = Field(default_factory=list, alias="supportingFixtures")
    unused_fixtures: List[str] = Field(default_factory=list, alias="unusedFixtures")
    reasoning: str = ""


class ReconcileReport(CamelModel):
    dropped_fixture_ids: List[str] = Field(default_factory=list, alias="droppedFixtureIds")
    dropped_channels: int = Field(default=0, alias="droppedChannels")
    clamped_channels: int = Field(default=0, alias="clampedChannels")
    dropped_cues: int = Field(default=0, alias="droppedCues")

    def is_clean(self) -> bool:
        return not (self.dropped_fixture_ids or self.dropped_channels or self.clamped_channels or self.dropped_cues)
