"""Shared fixtures: on-disk assets and stand-in ffmpeg executables."""

import io
import os
import stat
import sys

import pytest
from PIL import Image

from invite_engine.config import BACKGROUND_VIDEO, FONT_FILES, RenderAssets
from invite_engine.layout import LayoutResolver, load_video_config


def write_fake_engine(path, body):
    """Write an executable Python script that stands in for ffmpeg.

    The script sees the same argv ffmpeg would; the output path is the last argument.
    """
    with open(path, "w", encoding="utf-8") as f:
        f.write(f"#!{sys.executable}\n")
        f.write("import sys, time\n")
        f.write(body)
    os.chmod(path, os.stat(path).st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture
def assets_dir(tmp_path):
    root = tmp_path / "assets"
    (root / "fonts").mkdir(parents=True)
    (root / BACKGROUND_VIDEO).write_bytes(b"background")
    for name in FONT_FILES:
        (root / "fonts" / name).write_bytes(b"font")
    return str(root)


@pytest.fixture
def assets(assets_dir):
    return RenderAssets.from_dir(assets_dir)


@pytest.fixture
def layout():
    return LayoutResolver(load_video_config())


@pytest.fixture
def scratch_root(tmp_path):
    root = tmp_path / "scratch"
    root.mkdir()
    return str(root)


@pytest.fixture
def engine_dir(tmp_path):
    root = tmp_path / "bin"
    root.mkdir()
    return root


@pytest.fixture
def echo_engine(engine_dir):
    """Writes its own argv into the output file after a short pause"""
    return write_fake_engine(
        engine_dir / "ffmpeg-echo",
        "time.sleep(0.2)\n"
        "with open(sys.argv[-1], 'w', encoding='utf-8') as out:\n"
        "    out.write('\\n'.join(sys.argv[1:]))\n",
    )


@pytest.fixture
def failing_engine(engine_dir):
    return write_fake_engine(
        engine_dir / "ffmpeg-fail",
        "sys.stderr.write('x' * 2000 + 'Error initializing complex filters.\\n')\n"
        "sys.exit(1)\n",
    )


@pytest.fixture
def silent_engine(engine_dir):
    """Exits cleanly without producing an output file"""
    return write_fake_engine(engine_dir / "ffmpeg-silent", "sys.exit(0)\n")


@pytest.fixture
def slow_engine(engine_dir):
    return write_fake_engine(engine_dir / "ffmpeg-slow", "time.sleep(30)\n")


def make_image(fmt="PNG", mode="RGB", size=(8, 8)):
    img = Image.new(mode, size, color=(200, 120, 40) if mode == "RGB" else (200, 120, 40, 255))
    out = io.BytesIO()
    img.save(out, fmt)
    return out.getvalue()


@pytest.fixture
def png_bytes():
    return make_image("PNG")


@pytest.fixture
def jpeg_bytes():
    return make_image("JPEG")


@pytest.fixture
def listing_engine(engine_dir):
    """Answers `-filters` like a build without drawtext"""
    return write_fake_engine(
        engine_dir / "ffmpeg-listing",
        "print('Filters:')\n"
        "print('  T.. = Timeline support')\n"
        "print('  ... = Slice threading')\n"
        "print(' TSC overlay           VV->V      Overlay a video source on top of the input.')\n"
        "print(' T.. fade              V->V       Fade in/out input video.')\n"
        "print(' ... metadata          V->V       Manipulate video frame metadata.')\n",
    )
