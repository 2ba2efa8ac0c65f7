"""Export runner — drives ffmpeg through the stages of a render plan.

Run lifecycle:
  fetch    resolve every clip's source_ref to a local file. A clip whose
           source cannot be fetched is logged and dropped; if no video
           clip survives, the export fails.
  plan     build the RenderPlan inside a private work directory.
  concat / mix_audio / encode
           one ffmpeg subprocess each, strictly in order. Progress is
           parsed from `-progress pipe:1`.

Every intermediate file lives in the work directory, which is deleted
when the run ends (success, failure, or cancellation). The encoded file
is moved to the requested output path only after the final stage
succeeds, so a failed or cancelled export never leaves a partial file.

Events go to a single observer callback: progress events while running,
then exactly one terminal success or failure event.
"""

import asyncio
import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol

import imageio_ffmpeg

from .clips import VIDEO_TRACK_ID, Clip
from .errors import ExportStageError, SourceFetchError
from .render_plan import ExportOptions, build_render_plan

logger = logging.getLogger(__name__)

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()

# Keep this many trailing stderr lines in a stage failure message.
_STDERR_TAIL_LINES = 8


# ── Events ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ExportEvent:
    """Progress or terminal status of an export run."""

    stage: str
    percent: float
    status: str = "progress"      # "progress" | "success" | "failure"
    artifact: str | None = None
    reason: str | None = None

    def to_dict(self) -> dict:
        data = {"stage": self.stage, "percent": round(self.percent, 1),
                "status": self.status}
        if self.artifact is not None:
            data["artifact"] = self.artifact
        if self.reason is not None:
            data["reason"] = self.reason
        return data


# ── Source fetching ────────────────────────────────────────────────

class SourceFetcher(Protocol):
    def fetch(self, source_ref: str, work_dir: Path) -> Path:
        """Return a local path for source_ref or raise SourceFetchError."""
        ...


class LocalFileFetcher:
    """Resolves source refs as local file paths (relative to base_dir)."""

    def __init__(self, base_dir: str | Path | None = None):
        self.base_dir = Path(base_dir) if base_dir is not None else None

    def fetch(self, source_ref: str, work_dir: Path) -> Path:
        path = Path(source_ref)
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        if not path.is_file():
            raise SourceFetchError(source_ref, "file not found")
        return path.resolve()


def fetch_sources(
    clips,
    fetcher: SourceFetcher,
    work_dir: Path,
    video_track_id: str,
) -> tuple[list[Clip], dict[str, str]]:
    """Fetch every clip's media; return surviving clips and local paths.

    Raises:
        SourceFetchError: Every video clip on the video track failed.
    """
    kept = []
    sources = {}
    failures = []
    for clip in clips:
        try:
            sources[clip.id] = str(fetcher.fetch(clip.source_ref, work_dir))
        except SourceFetchError as exc:
            logger.warning("skipping clip %s: %s", clip.id, exc)
            failures.append(clip)
            continue
        kept.append(clip)

    had_video = any(
        c.kind == "video" and c.track_id == video_track_id for c in clips
    )
    has_video = any(
        c.kind == "video" and c.track_id == video_track_id for c in kept
    )
    if had_video and not has_video:
        first = next(
            c for c in failures
            if c.kind == "video" and c.track_id == video_track_id
        )
        raise SourceFetchError(first.source_ref, "no video clip could be fetched")
    return kept, sources


# ── Runner ─────────────────────────────────────────────────────────

def _progress_seconds(line: str) -> float | None:
    """Seconds encoded so far from an ffmpeg -progress line, if any."""
    key, _, value = line.partition("=")
    if key in ("out_time_us", "out_time_ms") and value.strip().isdigit():
        # Both keys report microseconds.
        return int(value) / 1_000_000
    return None


class ExportRunner:
    """Runs render plans through ffmpeg, one stage at a time."""

    def __init__(
        self,
        fetcher: SourceFetcher | None = None,
        on_event: Callable[[ExportEvent], None] | None = None,
        ffmpeg: str | None = None,
    ):
        self.fetcher = fetcher or LocalFileFetcher()
        self.on_event = on_event
        self.ffmpeg = ffmpeg or _FFMPEG
        self.stage = "idle"

    def _emit(self, event: ExportEvent) -> None:
        if self.on_event is not None:
            self.on_event(event)

    def _progress(self, stage: str, percent: float) -> None:
        self._emit(ExportEvent(stage=stage, percent=max(0.0, min(100.0, percent))))

    async def run(
        self,
        clips,
        options: ExportOptions,
        output_path: str | Path,
        video_track_id: str = VIDEO_TRACK_ID,
    ) -> Path:
        """Export a clip snapshot to output_path and return its path.

        Raises:
            SourceFetchError: No video clip could be fetched.
            ExportStageError: Planning or an ffmpeg stage failed.
            asyncio.CancelledError: The run was cancelled.
        """
        output_path = Path(output_path)
        work_dir = Path(tempfile.mkdtemp(prefix="cliptimeline_"))
        self.stage = "fetch"
        logger.info("export to %s (work dir %s)", output_path, work_dir)

        try:
            self._progress("fetch", 0)
            kept, sources = fetch_sources(
                tuple(clips), self.fetcher, work_dir, video_track_id,
            )
            self._progress("fetch", 100)

            self.stage = "plan"
            plan = build_render_plan(
                kept, options, video_track_id, work_dir=work_dir, sources=sources,
            )
            Path(plan.manifest_path).write_text(plan.manifest_text)

            for op in plan.operations:
                self.stage = op.stage
                logger.info("stage %s", op.stage)
                await self._run_stage(op.stage, op.args, op.expected_duration)

            self.stage = "finalize"
            output_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(plan.output, output_path)

        except asyncio.CancelledError:
            logger.warning("export cancelled during %s", self.stage)
            self._emit(ExportEvent(self.stage, 0, "failure", reason="cancelled"))
            raise
        except ExportStageError as exc:
            logger.error("%s", exc)
            self._emit(ExportEvent(exc.stage, 0, "failure", reason=exc.reason))
            raise
        except SourceFetchError as exc:
            logger.error("%s", exc)
            self._emit(ExportEvent(self.stage, 0, "failure", reason=str(exc)))
            raise
        except OSError as exc:
            logger.error("export failed during %s: %s", self.stage, exc)
            self._emit(ExportEvent(self.stage, 0, "failure", reason=str(exc)))
            raise ExportStageError(self.stage, str(exc)) from exc
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

        self.stage = "done"
        self._emit(ExportEvent("done", 100, "success", artifact=str(output_path)))
        logger.info("export complete: %s", output_path)
        return output_path

    async def _run_stage(
        self,
        stage: str,
        args: tuple[str, ...],
        expected_duration: float,
    ) -> None:
        cmd = [
            self.ffmpeg, "-y", "-nostdin",
            "-hide_banner", "-nostats", "-progress", "pipe:1",
            *args,
        ]
        logger.debug("ffmpeg %s", " ".join(args))
        self._progress(stage, 0)

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ExportStageError(stage, f"could not start ffmpeg: {exc}") from exc

        stderr_task = asyncio.ensure_future(proc.stderr.read())
        try:
            async for raw in proc.stdout:
                seconds = _progress_seconds(raw.decode(errors="replace").strip())
                if seconds is not None and expected_duration > 0:
                    self._progress(stage, 100 * seconds / expected_duration)
            stderr = await stderr_task
            returncode = await proc.wait()
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
            await proc.wait()
            stderr_task.cancel()
            raise

        if returncode != 0:
            tail = stderr.decode(errors="replace").strip().splitlines()
            reason = "\n".join(tail[-_STDERR_TAIL_LINES:]) or f"exit code {returncode}"
            raise ExportStageError(stage, reason)
        self._progress(stage, 100)


def export_timeline(
    clips,
    options: ExportOptions,
    output_path: str | Path,
    video_track_id: str = VIDEO_TRACK_ID,
    fetcher: SourceFetcher | None = None,
    on_event: Callable[[ExportEvent], None] | None = None,
) -> Path:
    """Blocking export; see ExportRunner.run."""
    runner = ExportRunner(fetcher=fetcher, on_event=on_event)
    return asyncio.run(runner.run(clips, options, output_path, video_track_id))
