"""Invite video engine: layout, filter graph and ffmpeg rendering for invite videos."""

from .config import RenderAssets, Settings
from .dates import DateParts, parse_date_parts
from .errors import (
    ConfigurationError,
    InviteError,
    MissingAssetsError,
    MissingFieldsError,
    RenderProcessError,
    RenderTimeout,
)
from .escaping import escape_font_path, escape_text
from .filtergraph import FilterGraph, RenderRequest, build_command, build_graph
from .layout import LayoutResolver, VideoConfig, load_video_config
from .renderer import InviteRenderer
from .timing import TimingWindow, opacity, opacity_expression

__version__ = "1.0.0"

__all__ = [
    "ConfigurationError",
    "DateParts",
    "FilterGraph",
    "InviteError",
    "InviteRenderer",
    "LayoutResolver",
    "MissingAssetsError",
    "MissingFieldsError",
    "RenderAssets",
    "RenderProcessError",
    "RenderRequest",
    "RenderTimeout",
    "Settings",
    "TimingWindow",
    "VideoConfig",
    "build_command",
    "build_graph",
    "escape_font_path",
    "escape_text",
    "load_video_config",
    "opacity",
    "opacity_expression",
    "parse_date_parts",
]
