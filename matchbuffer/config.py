from dataclasses import dataclass

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "MatchBuffer"
    debug: bool = False

    database_url: str = "postgresql+asyncpg://localhost:5432/matchbuffer"

    # Preload buffer sizing (minimum <= refill trigger < target)
    preload_target_size: int = 8
    preload_minimum_size: int = 3
    preload_refill_trigger: int = 5
    refill_concurrency: int = 4
    max_generation_attempts: int = 3
    tracking_keep_recent: int = 2
    max_seen_items: int = 50
    max_seen_pairs: int = 1500

    # Enhanced vs legacy selection
    enhanced_ratio: float = 0.7
    enhanced_timeout_seconds: float = 0.8
    enhanced_min_success_rate: float = 0.3
    enhanced_min_attempts: int = 5
    enhanced_window: int = 10
    enhanced_probe_interval: int = 20

    # Item store query bounds
    item_pool_limit: int = 2000
    legacy_pool_limit: int = 200

    # Content mirrors
    mirror_urls: list[str] = [
        "https://ipfs.io/ipfs/",
        "https://dweb.link/ipfs/",
        "https://gateway.ipfs.io/ipfs/",
        "https://4everland.io/ipfs/",
        "https://w3s.link/ipfs/",
        "https://nftstorage.link/ipfs/",
    ]
    mirror_success_threshold: float = 0.3
    mirror_recent_failure_seconds: float = 10 * 60
    mirror_idle_reset_seconds: float = 30 * 60
    mirror_sweep_interval_seconds: float = 5 * 60
    asset_validation_timeout_seconds: float = 2.0
    placeholder_url_template: str = "https://picsum.photos/400/400?random={seed}"


settings = Settings()


# =============================================================================
# SCORING CONFIGURATION
# =============================================================================


@dataclass(frozen=True)
class ScoringWeights:
    """
    Weights of the pair information score.

    Each term is normalized before weighting; the weights must sum to 1.
    """

    uncertainty: float = 0.4
    proximity: float = 0.3
    deficit: float = 0.2
    diversity: float = 0.1

    def __post_init__(self) -> None:
        total = self.uncertainty + self.proximity + self.deficit + self.diversity
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Scoring weights must sum to 1.0, got {total:.3f}")


DEFAULT_WEIGHTS = ScoringWeights()

# Uncertainty model: base * decay ** votes, never below the floor
DEFAULT_UNCERTAINTY = 100.0
MIN_UNCERTAINTY = 25.0
UNCERTAINTY_DECAY_RATE = 0.95

# Rating gap beyond which a pair carries no proximity value
MAX_EXPECTED_RATING_DIFF = 400.0

# Items past this many votes no longer score for vote scarcity
VOTE_SCARCITY_CEILING = 50

# Hard cap on pairs evaluated per scoring pass
MAX_EVALUATED_PAIRS = 100

# Weighted random choice over the top K candidates, weight = decay ** rank
TOP_K_CANDIDATES = 5
RANK_DECAY = 0.7
