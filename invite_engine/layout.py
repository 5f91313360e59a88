"""Element layout configuration and resolution.

The layout tree (canvas, named timing presets, per-element position/style)
is validated once with pydantic. `LayoutResolver.resolve()` then hands the
filter graph builder a fully populated element, never a partial dict.
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .errors import ConfigurationError
from .timing import TimingWindow, fmt

logger = logging.getLogger(__name__)

# Drawing order of the text layers
TEXT_ELEMENTS = ("parentsName", "month", "dayName", "time", "dateNumber", "year", "venue")
# The character overlay is configured under either name
CHARACTER_ELEMENTS = ("characterImage", "babyImage")

Align = Literal["left", "center", "right"]


class _Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Canvas(_Schema):
    width: int = Field(default=1080, gt=0)
    height: int = Field(default=1920, gt=0)


class Position(_Schema):
    x: float = 0.0
    y: float = 0.0
    width: Optional[float] = Field(default=None, ge=0)
    height: Optional[float] = Field(default=None, ge=0)


class TextStyle(_Schema):
    font_family: str = ""
    font_size: Optional[float] = Field(default=None, gt=0)
    color: str = ""
    font_weight: Optional[int] = None
    tracking: float = 0.0

    @field_validator("color")
    @classmethod
    def _hex_color(cls, value: str) -> str:
        if not value:
            return value
        digits = value.lstrip("#")
        if len(digits) != 6 or any(c not in "0123456789abcdefABCDEF" for c in digits):
            raise ValueError(f"color must be #RRGGBB, got {value!r}")
        return f"#{digits.lower()}"


class ElementSpec(_Schema):
    position: Position = Position()
    align: Align = "center"
    style: TextStyle = TextStyle()
    timing: Optional[TimingWindow] = None
    timing_ref: Optional[str] = None


class VideoConfig(_Schema):
    canvas: Canvas = Canvas()
    timings: Dict[str, TimingWindow] = {}
    elements: Dict[str, ElementSpec] = {}


DEFAULT_VIDEO_CONFIG = {
    "canvas": {"width": 1080, "height": 1920},
    "timings": {
        "hero": {"fadeInStart": 15, "fadeInDuration": 1, "fadeOutStart": 19, "fadeOutDuration": 1},
        "details": {"fadeInStart": 20, "fadeInDuration": 1, "fadeOutStart": 45, "fadeOutDuration": 0},
    },
    "elements": {
        "babyImage": {
            "position": {"x": 540, "y": 620, "width": 520, "height": 650},
            "timingRef": "hero",
        },
        "parentsName": {
            "position": {"x": 560, "y": 1080},
            "align": "center",
            "style": {"fontFamily": "Brightwall.ttf", "fontSize": 70, "fontWeight": 400, "color": "#af7f54", "tracking": 0},
            "timingRef": "hero",
        },
        "month": {
            "position": {"x": 560, "y": 800},
            "align": "center",
            "style": {"fontFamily": "Opensauce.ttf", "fontSize": 50, "fontWeight": 700, "color": "#4b4a4a", "tracking": 60},
            "timingRef": "details",
        },
        "dayName": {
            "position": {"x": 280, "y": 920},
            "align": "center",
            "style": {"fontFamily": "Opensauce.ttf", "fontSize": 50, "fontWeight": 700, "color": "#4b4a4a", "tracking": 40},
            "timingRef": "details",
        },
        "time": {
            "position": {"x": 800, "y": 920},
            "align": "center",
            "style": {"fontFamily": "Opensauce.ttf", "fontSize": 50, "fontWeight": 700, "color": "#4b4a4a", "tracking": 20},
            "timingRef": "details",
        },
        "dateNumber": {
            "position": {"x": 560, "y": 920},
            "align": "center",
            "style": {"fontFamily": "Roxborough CF.ttf", "fontSize": 85, "fontWeight": 400, "color": "#705e3c", "tracking": 0},
            "timingRef": "details",
        },
        "year": {
            "position": {"x": 560, "y": 1020},
            "align": "center",
            "style": {"fontFamily": "Opensauce.ttf", "fontSize": 50, "fontWeight": 700, "color": "#4b4a4a", "tracking": 80},
            "timingRef": "details",
        },
        "venue": {
            "position": {"x": 560, "y": 1200},
            "align": "center",
            "style": {"fontFamily": "Opensauce.ttf", "fontSize": 50, "fontWeight": 400, "color": "#4b4a4a", "tracking": 0},
            "timingRef": "details",
        },
    },
}


def parse_video_config(data: dict) -> VideoConfig:
    """Validate a layout tree, raising ConfigurationError on bad input"""
    try:
        return VideoConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid video config: {e}") from e


def load_video_config(path: Optional[str] = None) -> VideoConfig:
    """Load the layout from a JSON file, or the built-in default when no path is given"""
    if not path:
        return parse_video_config(DEFAULT_VIDEO_CONFIG)
    if not os.path.isfile(path):
        raise ConfigurationError(f"Video config not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not read video config {path}: {e}") from e
    return parse_video_config(data)


@dataclass(frozen=True)
class ResolvedElement:
    """An element with every field populated, ready for the builder"""
    name: str
    position: Position
    align: str
    style: TextStyle
    timing: TimingWindow

    def x_expression(self, width_var: str = "text_w") -> str:
        x = fmt(self.position.x)
        if self.align == "center":
            return f"{x}-({width_var}/2)"
        if self.align == "right":
            return f"{x}-({width_var})"
        return x

    def y_expression(self, height_var: str = "text_h") -> str:
        # Vertical anchor is always the centre line
        return f"{fmt(self.position.y)}-({height_var}/2)"


class LayoutResolver:
    """Resolves named elements against a validated VideoConfig"""

    def __init__(self, config: VideoConfig):
        self.config = config

    @property
    def canvas(self) -> Canvas:
        return self.config.canvas

    def has(self, name: str) -> bool:
        return name in self.config.elements

    def resolve_timing(self, name: str) -> TimingWindow:
        """Inline timing, then the named preset, then an always-visible window"""
        element = self.config.elements.get(name)
        if element is None:
            return TimingWindow()
        if element.timing is not None:
            return element.timing
        if element.timing_ref:
            preset = self.config.timings.get(element.timing_ref)
            if preset is not None:
                return preset
            logger.warning(f"⚠️ Element '{name}' references unknown timing preset '{element.timing_ref}'")
        return TimingWindow()

    def resolve(self, name: str) -> ResolvedElement:
        element = self.config.elements.get(name) or ElementSpec()
        return ResolvedElement(
            name=name,
            position=element.position,
            align=element.align,
            style=element.style,
            timing=self.resolve_timing(name),
        )

    def resolve_character(self) -> ResolvedElement:
        for name in CHARACTER_ELEMENTS:
            if self.has(name):
                return self.resolve(name)
        return self.resolve(CHARACTER_ELEMENTS[0])
