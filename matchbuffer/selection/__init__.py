from matchbuffer.selection.enhanced import EnhancedStrategy
from matchbuffer.selection.exclusion import has_unrevealed_traits, is_excluded, is_video_media
from matchbuffer.selection.legacy import LegacyStrategy
from matchbuffer.selection.orchestrator import FallbackOrchestrator
from matchbuffer.selection.policy import AdaptivePolicy
from matchbuffer.selection.strategies import (
    Ok,
    SelectionRequest,
    Skip,
    SkipReason,
    run_strategies,
)
from matchbuffer.selection.timeouts import RaceOutcome, race_with_timeout

__all__ = [
    "AdaptivePolicy",
    "EnhancedStrategy",
    "FallbackOrchestrator",
    "LegacyStrategy",
    "Ok",
    "RaceOutcome",
    "SelectionRequest",
    "Skip",
    "SkipReason",
    "has_unrevealed_traits",
    "is_excluded",
    "is_video_media",
    "race_with_timeout",
    "run_strategies",
]
