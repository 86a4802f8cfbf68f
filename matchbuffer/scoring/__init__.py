from matchbuffer.scoring.engine import CandidateScoringEngine
from matchbuffer.scoring.groups import GroupRegistry
from matchbuffer.scoring.metrics import (
    calibration_score,
    group_representation,
    information_potential,
    needs_calibration,
    pair_score,
    rating_proximity,
    representation_deficit,
    uncertainty,
)

__all__ = [
    "CandidateScoringEngine",
    "GroupRegistry",
    "calibration_score",
    "group_representation",
    "information_potential",
    "needs_calibration",
    "pair_score",
    "rating_proximity",
    "representation_deficit",
    "uncertainty",
]
