"""Helpers shared by the detector modules."""

BUCKET_MS = 5 * 60 * 1000


def time_bucket(now: float) -> int:
    """Floor to a 5-minute bucket so re-runs within a bucket keep the same id."""
    return int(now // BUCKET_MS * BUCKET_MS)


def minutes(window_ms: float) -> int:
    return round(window_ms / 60000)


def clamp_score(score: float) -> float:
    return min(100.0, max(0.0, score))
