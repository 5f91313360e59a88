"""Filter graph construction for invite videos.

Layer order: background clip (cover + centre crop) -> optional fading
character still -> one drawtext stage per non-empty text element. Each
stage reads the previous stage's pad label, so skipped elements never
leave a hole in the chain.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from pydantic import ValidationError

from .config import RenderAssets
from .dates import DateParts, parse_date_parts
from .errors import ConfigurationError, MissingFieldsError
from .escaping import escape_font_path, escape_text
from .layout import TEXT_ELEMENTS, LayoutResolver, ResolvedElement
from .timing import TimingWindow, fmt, opacity_expression

VENUE_MAX_CHARS = 28            # longer venues shrink to fit the same box
MIN_TOP_PADDING = 150           # character top edge never rises above this
CHARACTER_LOOP_SEC = 30         # looped still must be finite or the mp4 is malformed
DEFAULT_TEXT_COLOR = "#ffffff"

# Fills whichever character timing fields the layout leaves unset
CHARACTER_DEFAULT_TIMING = TimingWindow(
    fade_in_start=15, fade_in_duration=1, fade_out_start=28, fade_out_duration=2
)

# H.264/AAC settings that WhatsApp and mobile players accept
OUTPUT_CODEC_ARGS = [
    "-c:v", "libx264",
    "-preset", "fast",
    "-r", "24",
    "-crf", "23",
    "-maxrate", "2500k",
    "-bufsize", "5000k",
    "-c:a", "aac",
    "-b:a", "128k",
    "-pix_fmt", "yuv420p",
    "-movflags", "+faststart",
    "-shortest",
]

# Low-bitrate settings for WebM -> MP4 conversion
CONVERT_CODEC_ARGS = [
    "-c:v", "libx264",
    "-preset", "veryfast",
    "-crf", "36",
    "-maxrate", "600k",
    "-bufsize", "1200k",
    "-bf", "0",
    "-pix_fmt", "yuv420p",
    "-c:a", "aac",
    "-b:a", "96k",
    "-movflags", "+faststart",
]


@dataclass(frozen=True)
class RenderRequest:
    """One invite render: event text plus an optional character image"""
    parents_name: str
    date: str
    venue: str
    time: str = ""
    character_image: Optional[bytes] = None

    def validate(self) -> None:
        missing = [
            name
            for name, value in (("parentsName", self.parents_name), ("date", self.date), ("venue", self.venue))
            if not (value or "").strip()
        ]
        if missing:
            raise MissingFieldsError(missing)


@dataclass(frozen=True)
class FilterGraph:
    text: str
    inputs: List[str]
    output_label: str
    stages: List[str] = field(default_factory=list)


def character_timing(timing: TimingWindow) -> TimingWindow:
    """Configured character timing with each unset field taken from the default"""
    values = {
        name: getattr(timing if name in timing.model_fields_set else CHARACTER_DEFAULT_TIMING, name)
        for name in TimingWindow.model_fields
    }
    try:
        return TimingWindow(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid character timing: {e}") from e


def to_engine_color(hex_color: str) -> str:
    """'#af7f54' -> '0xaf7f54'"""
    return f"0x{(hex_color or DEFAULT_TEXT_COLOR).lstrip('#')}"


def venue_font_size(base_size: float, venue: str, max_chars: int = VENUE_MAX_CHARS) -> float:
    """Scale the venue font down proportionally once it exceeds `max_chars`"""
    length = len((venue or "").strip())
    if not length or length <= max_chars:
        return base_size
    return base_size * (max_chars / length)


def element_texts(request: RenderRequest, date_parts: Optional[DateParts]) -> dict:
    """Display text per element; date-derived entries are blank without date parts"""
    parts = date_parts
    return {
        "parentsName": request.parents_name or "",
        "month": parts.month.upper() if parts else "",
        "dayName": parts.day_name.upper() if parts else "",
        "time": (request.time or "").strip().upper(),
        "dateNumber": parts.date_number if parts else "",
        "year": parts.year if parts else "",
        "venue": request.venue or "",
    }


class FilterGraphBuilder:
    """Accumulates filter statements while tracking the current layer label"""

    def __init__(self, canvas_width: int, canvas_height: int):
        self.width = canvas_width
        self.height = canvas_height
        self.stages: List[str] = []
        self.current: Optional[str] = None
        self._text_count = 0

    def background(self, source: str = "0:v") -> "FilterGraphBuilder":
        """Cover the canvas (aspect-fill) and centre-crop to exact size"""
        w, h = self.width, self.height
        self.stages.append(
            f"[{source}]scale={w}:{h}:force_original_aspect_ratio=increase,crop={w}:{h}[bg]"
        )
        self.current = "bg"
        return self

    def character(self, element: ResolvedElement, timing: TimingWindow, source: str = "1:v") -> "FilterGraphBuilder":
        """Fit the still into its box, fade it, and overlay it centred on its anchor"""
        box_w = int(round(element.position.width or 0))
        box_h = int(round(element.position.height or 0))
        if box_w <= 0 or box_h <= 0:
            raise ConfigurationError(f"Element '{element.name}' needs a positive width and height")

        if timing.fade_in_duration > 0:
            fades = f"fade=in:st={fmt(timing.fade_in_start)}:d={fmt(timing.fade_in_duration)}:alpha=1"
        else:
            fades = f"fade=in:st={fmt(timing.fade_in_start)}:n=1:alpha=1"
        if timing.has_fade_out:
            fades += f",fade=out:st={fmt(timing.fade_out_start)}:d={fmt(timing.fade_out_duration)}:alpha=1"

        self.stages.append(
            f"[{source}]scale={box_w}:{box_h}:force_original_aspect_ratio=decrease,format=rgba,{fades}[char]"
        )
        cx = fmt(element.position.x)
        cy = fmt(element.position.y)
        # The comma inside max() must be escaped or it splits the filter chain
        self.stages.append(
            f"[{self.current}][char]overlay={cx}-(w/2):max({MIN_TOP_PADDING}\\,{cy}-(h/2))[vid]"
        )
        self.current = "vid"
        return self

    def passthrough(self) -> "FilterGraphBuilder":
        self.stages.append(f"[{self.current}]copy[vid]")
        self.current = "vid"
        return self

    def text(self, element: ResolvedElement, text: str, font_path: str, font_size: float = None) -> "FilterGraphBuilder":
        """Append a drawtext stage; empty text appends nothing"""
        if not text or not text.strip():
            return self
        size = font_size if font_size is not None else element.style.font_size
        if size is None or size <= 0:
            raise ConfigurationError(f"Element '{element.name}' has no font size")
        if not font_path:
            raise ConfigurationError(f"Element '{element.name}' has no font file")

        self._text_count += 1
        label = f"v{self._text_count}"
        self.stages.append(
            f"[{self.current}]drawtext="
            f"fontfile='{escape_font_path(font_path)}':"
            f"text='{escape_text(text)}':"
            # User text is drawn verbatim, never as %{...} expansions
            "expansion=none:"
            f"fontsize={fmt(size)}:"
            f"fontcolor={to_engine_color(element.style.color)}:"
            f"x={element.x_expression()}:"
            f"y={element.y_expression()}:"
            f"alpha='{opacity_expression(element.timing)}'"
            f"[{label}]"
        )
        self.current = label
        return self

    def build(self, inputs: List[str]) -> FilterGraph:
        return FilterGraph(
            text=";".join(self.stages),
            inputs=list(inputs),
            output_label=self.current,
            stages=list(self.stages),
        )


def build_graph(
    request: RenderRequest,
    layout: LayoutResolver,
    assets: RenderAssets,
    character_path: Optional[str] = None,
) -> FilterGraph:
    """Assemble the full filter graph and input list for one render"""
    canvas = layout.canvas
    builder = FilterGraphBuilder(canvas.width, canvas.height).background()
    inputs = ["-i", assets.background_video]

    if character_path:
        character = layout.resolve_character()
        builder.character(character, character_timing(character.timing))
        inputs += ["-loop", "1", "-t", str(CHARACTER_LOOP_SEC), "-i", character_path]
    else:
        builder.passthrough()

    texts = element_texts(request, parse_date_parts(request.date))
    for name in TEXT_ELEMENTS:
        # A layout may leave elements out entirely
        if not layout.has(name):
            continue
        element = layout.resolve(name)
        font_size = element.style.font_size
        if name == "venue" and font_size:
            font_size = venue_font_size(font_size, request.venue)
        builder.text(element, texts[name], assets.font_path(element.style.font_family), font_size)

    return builder.build(inputs)


def build_command(ffmpeg_exe: str, graph: FilterGraph, output_path: str) -> List[str]:
    """argv for the composition run; no shell is involved"""
    return [
        ffmpeg_exe,
        "-hide_banner",
        "-y",
        *graph.inputs,
        "-filter_complex",
        graph.text,
        "-map",
        f"[{graph.output_label}]",
        "-map",
        "0:a?",
        *OUTPUT_CODEC_ARGS,
        output_path,
    ]


def build_convert_command(ffmpeg_exe: str, input_path: str, output_path: str) -> List[str]:
    return [ffmpeg_exe, "-hide_banner", "-y", "-i", input_path, *CONVERT_CODEC_ARGS, output_path]
