"""Rate engine — delta per tick between consecutive samples."""

from __future__ import annotations

from collections.abc import Sequence

from viewrate.core.types import HistoryPoint, Sample


def compute_rate(samples: Sequence[Sample]) -> int:
    """Return ``latest - previous`` for samples ordered newest first.

    Fewer than two samples yields 0. A decrease yields a negative rate;
    nothing is smoothed or clamped.
    """
    if len(samples) < 2:
        return 0
    latest, previous = samples[0], samples[1]
    return latest.measurement - previous.measurement


def rate_history(samples: Sequence[Sample]) -> list[HistoryPoint]:
    """Attach to each sample its rate against the immediately older sample.

    Args:
        samples: Samples ordered newest first (as returned by the store).

    Returns:
        Points in chronological order; the oldest point has rate 0.
    """
    points: list[HistoryPoint] = []
    for i, sample in enumerate(samples):
        rate = 0
        if i + 1 < len(samples):
            rate = sample.measurement - samples[i + 1].measurement
        points.append(HistoryPoint(
            observed_at=sample.observed_at,
            measurement=sample.measurement,
            rate=rate,
        ))
    points.reverse()
    return points
