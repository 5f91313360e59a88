"""Runs the ffmpeg composition inside a per-render scratch directory.

Every render gets its own `tempfile.mkdtemp()` directory, removed on every
exit path (success, engine failure, timeout, cancellation). Nothing is
shared between concurrent renders, so no locking is needed.
"""

import asyncio
import logging
import os
import shutil
import subprocess
import tempfile
import time
from contextlib import contextmanager
from typing import Iterator, List, Optional, Set

from .config import RenderAssets
from .errors import EngineFilterMissingError, RenderProcessError, RenderTimeout, tail
from .filtergraph import RenderRequest, build_command, build_convert_command, build_graph
from .layout import LayoutResolver

logger = logging.getLogger(__name__)

CHARACTER_FILENAME = "character.png"
OUTPUT_FILENAME = "output.mp4"
# Filters the composition graph cannot do without
REQUIRED_FILTERS = ("drawtext",)


def list_engine_filters(ffmpeg_exe: str, timeout_sec: float = 15.0) -> Optional[Set[str]]:
    """Filter names the engine binary was built with, or None if it could not be asked"""
    try:
        result = subprocess.run(
            [ffmpeg_exe, "-hide_banner", "-filters"],
            capture_output=True, text=True, timeout=timeout_sec,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.warning(f"⚠️ Could not list filters of {ffmpeg_exe}: {e}")
        return None
    if result.returncode != 0:
        logger.warning(f"⚠️ {ffmpeg_exe} -filters exited with {result.returncode}")
        return None

    filters = set()
    for line in result.stdout.splitlines():
        # " T.C drawtext          V->V       Draw text on top of video frames..."
        parts = line.split()
        if len(parts) >= 3 and "->" in parts[2]:
            filters.add(parts[1])
    return filters


@contextmanager
def scratch_directory(root: Optional[str] = None, prefix: str = "video-compose-") -> Iterator[str]:
    """Fresh uniquely named directory, removed recursively on exit"""
    path = tempfile.mkdtemp(prefix=prefix, dir=root)
    try:
        yield path
    finally:
        _remove_tree(path)


def _remove_tree(path: str) -> None:
    """Best-effort cleanup; a failure here must never mask the render result"""
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"⚠️ Could not remove scratch directory {path}: {e}")


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()


async def run_engine(command: List[str], timeout_sec: float) -> None:
    """Run ffmpeg once. Raises RenderTimeout or RenderProcessError; never retries"""
    logger.debug(f"🎬 Engine command: {command}")
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise RenderProcessError(None, f"Could not start engine {command[0]}: {e}") from e

    try:
        _, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_sec)
    except asyncio.TimeoutError:
        await _kill(proc)
        raise RenderTimeout(timeout_sec)
    except asyncio.CancelledError:
        await _kill(proc)
        raise

    if proc.returncode != 0:
        stderr_text = stderr.decode("utf-8", errors="replace") if stderr else ""
        logger.error(f"❌ Engine exited with {proc.returncode}: {tail(stderr_text)}")
        raise RenderProcessError(proc.returncode, stderr_text)


async def execute(command: List[str], output_path: str, timeout_sec: float) -> bytes:
    """Run the engine and read the finished file fully into memory"""
    await run_engine(command, timeout_sec)
    if not os.path.isfile(output_path):
        raise RenderProcessError(0, "Engine finished without writing an output file")
    with open(output_path, "rb") as f:
        return f.read()


class InviteRenderer:
    """Renders invite videos; one instance per process, safe for concurrent renders"""

    def __init__(
        self,
        layout: LayoutResolver,
        assets: RenderAssets,
        ffmpeg_exe: str,
        timeout_sec: float = 300.0,
        scratch_root: Optional[str] = None,
        engine_filters: Optional[Set[str]] = None,
    ):
        self.layout = layout
        self.assets = assets
        self.ffmpeg_exe = ffmpeg_exe
        self.timeout_sec = timeout_sec
        self.scratch_root = scratch_root
        # None means the filter list is unknown; the engine itself will complain
        self.engine_filters = engine_filters

    def missing_filters(self) -> List[str]:
        if self.engine_filters is None:
            return []
        return [name for name in REQUIRED_FILTERS if name not in self.engine_filters]

    async def render(self, request: RenderRequest, request_id: str = "") -> bytes:
        """Compose the invite video for `request` and return the mp4 bytes"""
        request.validate()
        # Deployment precondition: checked before any scratch file exists
        self.assets.ensure_present()
        missing_filters = self.missing_filters()
        if missing_filters:
            raise EngineFilterMissingError(self.ffmpeg_exe, missing_filters)

        start = time.time()
        with scratch_directory(self.scratch_root, prefix="video-compose-") as work_dir:
            character_path = None
            if request.character_image:
                character_path = os.path.join(work_dir, CHARACTER_FILENAME)
                with open(character_path, "wb") as f:
                    f.write(request.character_image)

            graph = build_graph(request, self.layout, self.assets, character_path)
            output_path = os.path.join(work_dir, OUTPUT_FILENAME)
            command = build_command(self.ffmpeg_exe, graph, output_path)
            logger.info(
                f"🎬 [{request_id}] Composing video "
                f"(character={'yes' if character_path else 'no'}, stages={len(graph.stages)})"
            )
            logger.debug(f"[{request_id}] Filter graph: {graph.text}")

            video = await execute(command, output_path, self.timeout_sec)

        logger.info(f"✅ [{request_id}] Video composed in {time.time() - start:.1f}s ({len(video) / 1024:.0f} KB)")
        return video

    async def convert_webm(self, webm: bytes, timeout_sec: float = 120.0, request_id: str = "") -> bytes:
        """Transcode a browser-recorded WebM into a mobile-friendly MP4"""
        with scratch_directory(self.scratch_root, prefix="video-convert-") as work_dir:
            input_path = os.path.join(work_dir, "input.webm")
            output_path = os.path.join(work_dir, OUTPUT_FILENAME)
            with open(input_path, "wb") as f:
                f.write(webm)
            command = build_convert_command(self.ffmpeg_exe, input_path, output_path)
            logger.info(f"🎬 [{request_id}] Converting WebM ({len(webm) / 1024:.0f} KB)")
            video = await execute(command, output_path, timeout_sec)

        logger.info(f"✅ [{request_id}] Conversion complete ({len(video) / 1024:.0f} KB)")
        return video
