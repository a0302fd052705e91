"""Admission rules for storage trigger events.

Publishing a variant or poster writes a new object under the source
namespace, which fires the trigger again. Those generated objects must be
rejected here or every publish would start another transcode.
"""

from dataclasses import dataclass

from ..shared.config import Settings

# Path fragments that mark objects this pipeline generated itself
GENERATED_PATH_MARKERS = ("/variants/", "-720p", "-poster")


@dataclass(frozen=True)
class TriggerDecision:
    """Whether an object should be processed, and why."""

    accepted: bool
    reason: str


def evaluate_path(path: str, settings: Settings) -> TriggerDecision:
    """Apply the path rules only.

    The handler calls this before reading the object's content type so
    unrelated objects never cost a HeadObject request.
    """
    if not path or not path.startswith(f"{settings.source_prefix}/"):
        return TriggerDecision(False, f"outside {settings.source_prefix}/")

    for marker in GENERATED_PATH_MARKERS:
        if marker in path:
            return TriggerDecision(False, f"generated variant or poster ({marker!r})")

    if path.endswith("/"):
        return TriggerDecision(False, "folder placeholder")

    return TriggerDecision(True, "source path")


def evaluate_trigger(path: str, content_type: str | None, settings: Settings) -> TriggerDecision:
    """Decide whether an uploaded object starts a processing job.

    Args:
        path: Object key
        content_type: MIME type reported by storage
        settings: Application settings (source prefix)

    Returns:
        TriggerDecision with accepted=True only for source videos
    """
    decision = evaluate_path(path, settings)
    if not decision.accepted:
        return decision

    if not content_type or not content_type.lower().startswith("video/"):
        return TriggerDecision(False, f"not a video ({content_type or 'no content type'})")

    return TriggerDecision(True, "source video")
