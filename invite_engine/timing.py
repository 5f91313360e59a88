"""Fade timing for invite elements.

The same schedule is evaluated two ways: `opacity()` computes it in Python,
`opacity_expression()` emits it as an ffmpeg per-frame expression so the
engine evaluates it at render time.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


def fmt(value: float) -> str:
    """Format a number for the filter graph (16.0 -> '16', 0.25 -> '0.25')"""
    text = f"{float(value):.6f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


class TimingWindow(BaseModel):
    """Fade-in/fade-out schedule in seconds from the start of the render"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    fade_in_start: float = Field(default=0.0, ge=0)
    fade_in_duration: float = 0.0
    fade_out_start: Optional[float] = None
    fade_out_duration: Optional[float] = None

    @model_validator(mode="after")
    def _fade_out_after_fade_in(self) -> "TimingWindow":
        if self.fade_out_start is not None:
            fade_in_end = self.fade_in_start + max(self.fade_in_duration, 0.0)
            if self.fade_out_start < fade_in_end:
                raise ValueError(
                    f"fadeOutStart ({self.fade_out_start}) must not precede the end of the fade-in ({fade_in_end})"
                )
        return self

    @property
    def fade_in_end(self) -> float:
        return self.fade_in_start + self.fade_in_duration

    @property
    def has_fade_out(self) -> bool:
        return (
            self.fade_out_start is not None
            and self.fade_out_duration is not None
            and self.fade_out_duration > 0
        )


def opacity(current_time: float, timing: TimingWindow) -> float:
    """Opacity in [0, 1] of an element at `current_time` seconds"""
    start = timing.fade_in_start
    duration = timing.fade_in_duration

    if current_time < start:
        return 0.0
    # Zero-length fade-in is a step, not a division by zero
    if duration > 0 and current_time < start + duration:
        return (current_time - start) / duration
    if not timing.has_fade_out:
        return 1.0

    out_start = timing.fade_out_start
    out_duration = timing.fade_out_duration
    if current_time < out_start:
        return 1.0
    if current_time < out_start + out_duration:
        return 1.0 - (current_time - out_start) / out_duration
    return 0.0


def opacity_expression(timing: TimingWindow, var: str = "t") -> str:
    """Nested if() expression equivalent to `opacity()` for the engine's expression evaluator"""
    start = fmt(timing.fade_in_start)
    duration = timing.fade_in_duration

    hold = "1"
    if timing.has_fade_out:
        out_start = fmt(timing.fade_out_start)
        out_duration = fmt(timing.fade_out_duration)
        out_end = fmt(timing.fade_out_start + timing.fade_out_duration)
        hold = (
            f"if(lt({var},{out_start}),1,"
            f"if(lt({var},{out_end}),1-(({var}-{out_start})/{out_duration}),0))"
        )

    if duration <= 0:
        return f"if(lt({var},{start}),0,{hold})"

    end = fmt(timing.fade_in_start + duration)
    return f"if(lt({var},{start}),0,if(lt({var},{end}),(({var}-{start})/{fmt(duration)}),{hold}))"
