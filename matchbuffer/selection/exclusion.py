"""
Eligibility rules for items shown in sessions.

Video media cannot be shown in a still-image session, and items whose
traits mark them as unrevealed would show a placeholder artwork.
"""

from matchbuffer.models.item import Item

VIDEO_EXTENSIONS = (".mp4", ".mov", ".avi", ".webm", ".mkv")

# (trait key, trait value) pairs marking unrevealed items, lowercase
UNREVEALED_TRAITS: frozenset[tuple[str, str]] = frozenset(
    {
        ("reveal", "unrevealed"),
        ("status", "unrevealed"),
        ("status", "hidden"),
        ("stage", "pre-reveal"),
        ("hive", "regular"),
        ("hive", "robot"),
        ("hive", "zombee"),
        ("hive", "present"),
    }
)


def is_video_media(media_ref: str) -> bool:
    """True if the media reference points at a video file."""
    path = media_ref.lower().split("?", 1)[0].split("#", 1)[0]
    return path.endswith(VIDEO_EXTENSIONS) or any(f"{ext}/" in path for ext in VIDEO_EXTENSIONS)


def has_unrevealed_traits(traits: tuple[tuple[str, str], ...]) -> bool:
    return any(
        (key.strip().lower(), value.strip().lower()) in UNREVEALED_TRAITS for key, value in traits
    )


def is_excluded(item: Item) -> bool:
    """True if the item must never appear in a session."""
    return is_video_media(item.media_ref) or has_unrevealed_traits(item.traits)


def eligible(items: list[Item]) -> list[Item]:
    return [item for item in items if not is_excluded(item)]
