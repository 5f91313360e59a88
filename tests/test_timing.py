"""Tests for fade timing and its engine expression."""

import pytest
from pydantic import ValidationError

from invite_engine.timing import TimingWindow, fmt, opacity, opacity_expression


FADE_IN = TimingWindow(fade_in_start=15, fade_in_duration=1)
FADE_IN_OUT = TimingWindow(fade_in_start=15, fade_in_duration=1, fade_out_start=28, fade_out_duration=2)


class TestOpacity:
    """Tests for opacity()."""

    def test_fade_in_boundaries(self):
        assert opacity(14.9, FADE_IN) == 0
        assert opacity(15.5, FADE_IN) == 0.5
        assert opacity(16, FADE_IN) == 1

    def test_stays_visible_without_fade_out(self):
        assert opacity(500, FADE_IN) == 1

    def test_fade_out_boundaries(self):
        assert opacity(27.9, FADE_IN_OUT) == 1
        assert opacity(29, FADE_IN_OUT) == 0.5
        assert opacity(30, FADE_IN_OUT) == 0
        assert opacity(45, FADE_IN_OUT) == 0

    def test_zero_duration_is_a_step(self):
        """A zero-length fade-in must not divide by zero."""
        timing = TimingWindow(fade_in_start=3, fade_in_duration=0)
        assert opacity(2.99, timing) == 0
        assert opacity(3, timing) == 1

    def test_zero_fade_out_duration_never_hides(self):
        timing = TimingWindow(fade_in_start=20, fade_in_duration=1, fade_out_start=45, fade_out_duration=0)
        assert not timing.has_fade_out
        assert opacity(60, timing) == 1

    def test_empty_window_always_visible(self):
        assert opacity(0, TimingWindow()) == 1


class TestTimingWindow:
    """Tests for TimingWindow validation."""

    def test_camel_case_aliases(self):
        timing = TimingWindow.model_validate(
            {"fadeInStart": 20, "fadeInDuration": 1, "fadeOutStart": 45, "fadeOutDuration": 0}
        )
        assert timing.fade_in_start == 20
        assert timing.fade_out_start == 45
        assert timing.fade_in_end == 21

    def test_fade_out_before_fade_in_end_rejected(self):
        with pytest.raises(ValidationError):
            TimingWindow(fade_in_start=15, fade_in_duration=2, fade_out_start=16, fade_out_duration=1)

    def test_negative_start_rejected(self):
        with pytest.raises(ValidationError):
            TimingWindow(fade_in_start=-1)


class TestOpacityExpression:
    """Tests for the engine-side expression."""

    def test_fade_in_only(self):
        assert opacity_expression(FADE_IN) == "if(lt(t,15),0,if(lt(t,16),((t-15)/1),1))"

    def test_fade_in_and_out(self):
        assert opacity_expression(FADE_IN_OUT) == (
            "if(lt(t,15),0,if(lt(t,16),((t-15)/1),"
            "if(lt(t,28),1,if(lt(t,30),1-((t-28)/2),0))))"
        )

    def test_step_has_no_division(self):
        expr = opacity_expression(TimingWindow(fade_in_start=3, fade_in_duration=0))
        assert expr == "if(lt(t,3),0,1)"
        assert "/" not in expr

    def test_fractional_values(self):
        expr = opacity_expression(TimingWindow(fade_in_start=1.5, fade_in_duration=0.25))
        assert expr == "if(lt(t,1.5),0,if(lt(t,1.75),((t-1.5)/0.25),1))"


def test_fmt():
    assert fmt(16.0) == "16"
    assert fmt(0.25) == "0.25"
    assert fmt(0) == "0"
