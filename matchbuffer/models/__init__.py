from matchbuffer.models.failure import (
    STANDARD_MESSAGES,
    STANDARD_SUGGESTIONS,
    ApiResponse,
    FailureDetail,
    FailureKind,
    GroupNotFoundError,
    KnownError,
    OutcomeType,
    create_known_failure,
    create_success,
    create_unknown_failure,
    finalize_response,
    is_finalized,
)
from matchbuffer.models.item import (
    DEFAULT_RATING,
    MAX_GROUP_PRIORITY,
    MIN_GROUP_PRIORITY,
    GroupStatus,
    Item,
    ScoredItem,
    clamp_priority,
)
from matchbuffer.models.mirror import MirrorHealth
from matchbuffer.models.session import (
    CalibrationSession,
    Candidate,
    CandidatePair,
    PairSession,
    Session,
    SingleCandidate,
    VoteMode,
    pair_key,
    session_item_ids,
)

__all__ = [
    "ApiResponse",
    "CalibrationSession",
    "Candidate",
    "CandidatePair",
    "DEFAULT_RATING",
    "FailureDetail",
    "FailureKind",
    "GroupNotFoundError",
    "GroupStatus",
    "Item",
    "KnownError",
    "MAX_GROUP_PRIORITY",
    "MIN_GROUP_PRIORITY",
    "MirrorHealth",
    "OutcomeType",
    "PairSession",
    "STANDARD_MESSAGES",
    "STANDARD_SUGGESTIONS",
    "ScoredItem",
    "Session",
    "SingleCandidate",
    "VoteMode",
    "clamp_priority",
    "create_known_failure",
    "create_success",
    "create_unknown_failure",
    "finalize_response",
    "is_finalized",
    "pair_key",
    "session_item_ids",
]
