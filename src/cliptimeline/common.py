"""cliptimeline.common — shared utilities.

Contains: path variable resolution, numeric helpers, ffmpeg argument
formatting, and concat-manifest quoting.
"""

import re


# ── Path utilities ─────────────────────────────────────────────────

def resolve_path_vars(text: str, paths: dict[str, str]) -> str:
    """Replace ${name} variables in a string using the paths dict."""
    def _replace(match):
        key = match.group(1)
        if key not in paths:
            raise ValueError(f"Unknown path variable: ${{{key}}}")
        return paths[key]
    return re.sub(r"\$\{(\w+)\}", _replace, text)


# ── Numeric helpers ────────────────────────────────────────────────

# Float tolerance for interval comparisons. Clips placed edge to edge
# (end == next start) must not count as overlapping after float math.
EPSILON = 1e-9


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def intervals_overlap(
    a_start: float, a_duration: float,
    b_start: float, b_duration: float,
) -> bool:
    """True if half-open intervals [start, start+duration) intersect."""
    return (
        a_start < b_start + b_duration - EPSILON
        and b_start < a_start + a_duration - EPSILON
    )


# ── ffmpeg formatting ──────────────────────────────────────────────

def format_seconds(value: float) -> str:
    """Format seconds the way ffmpeg arguments expect (millisecond precision)."""
    return f"{value:.3f}"


def quote_concat_path(path: str) -> str:
    """Quote a path for an ffmpeg concat manifest 'file' directive.

    The concat demuxer uses shell-like single quoting: a literal quote
    is written as '\\'' (close, escaped quote, reopen).
    """
    return "'" + path.replace("'", "'\\''") + "'"
