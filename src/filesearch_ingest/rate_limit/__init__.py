"""Request pacing for sequential uploads.

Provides fixed-interval and token bucket pacers behind a common protocol.
"""

from filesearch_ingest.rate_limit.pacing import (
    FixedIntervalPacer,
    NoDelayPacer,
    Pacer,
    PacingConfig,
    PacingConfigError,
    PacingMode,
    TokenBucketPacer,
    build_pacer,
    load_pacing_config,
)

__all__ = [
    "FixedIntervalPacer",
    "NoDelayPacer",
    "Pacer",
    "PacingConfig",
    "PacingConfigError",
    "PacingMode",
    "TokenBucketPacer",
    "build_pacer",
    "load_pacing_config",
]
