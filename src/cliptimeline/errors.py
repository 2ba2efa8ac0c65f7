"""Error taxonomy for timeline edits and exports.

Placement errors (overlap, trim, track kind) are also ValueErrors so the
manifest loaders and CLIs can treat them like any other validation failure.
"""


class TimelineError(Exception):
    """Base class for every error raised by cliptimeline."""


class OverlapError(TimelineError, ValueError):
    """A placement would overlap another clip on the same track.

    Recoverable: ask the resolver for a conflict-free placement and retry.
    """

    def __init__(self, clip_id: str, track_id: str, blocking_id: str):
        self.clip_id = clip_id
        self.track_id = track_id
        self.blocking_id = blocking_id
        super().__init__(
            f"Clip '{clip_id}' overlaps clip '{blocking_id}' on track '{track_id}'"
        )


class InvalidTrimError(TimelineError, ValueError):
    """Trim values leave a clip with no playable duration."""


class TrackKindMismatchError(TimelineError, ValueError):
    """A clip's media kind is not accepted by the destination track."""


class UnknownTrackError(TimelineError, ValueError):
    """A clip references a track that does not exist in the project."""


class ClipNotFoundError(TimelineError, KeyError):
    """No clip with the given id is on the timeline."""

    def __str__(self):
        return f"Clip not found: '{self.args[0]}'"


class SourceFetchError(TimelineError):
    """Media bytes for a clip could not be retrieved."""

    def __init__(self, source_ref: str, reason: str):
        self.source_ref = source_ref
        self.reason = reason
        super().__init__(f"Could not fetch '{source_ref}': {reason}")


class ExportStageError(TimelineError):
    """An export stage failed; the whole export is aborted."""

    def __init__(self, stage: str, reason: str):
        self.stage = stage
        self.reason = reason
        super().__init__(f"Export failed during '{stage}': {reason}")
