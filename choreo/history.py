"""
Feature History Module

Bounded rolling store of recent per-frame feature values, one series per
tracked feature, supplying moving averages for trend comparison.
"""

from collections import deque
from typing import Deque, Dict, List, Optional, Tuple

from choreo.frames import FrameFeatures

TRACKED_FEATURES: Tuple[str, ...] = (
    'energy',
    'loudness_total',
    'rms',
    'spectral_flatness',
    'spectral_flux',
    'low_band_energy',
    'mid_band_energy',
    'high_band_energy',
)


class FeatureHistory:
    """
    Per-feature (value, time) series capped at max_length entries.

    Insertion order is time order; the oldest entry is evicted on overflow.
    """

    def __init__(self, max_length: int, features: Tuple[str, ...] = TRACKED_FEATURES):
        if max_length <= 0:
            raise ValueError(f"max_length must be positive, got {max_length}")
        self.max_length = max_length
        self._series: Dict[str, Deque[Tuple[float, float]]] = {
            name: deque(maxlen=max_length) for name in features
        }

    def record(self, name: str, value: float, time: float) -> None:
        """Append a value to one feature series."""
        if name not in self._series:
            raise KeyError(f"Untracked feature: {name}")
        self._series[name].append((float(value), float(time)))

    def record_frame(self, frame: FrameFeatures) -> None:
        """Record every tracked feature of a frame."""
        for name in self._series:
            self.record(name, getattr(frame, name), frame.time)

    def moving_average(self, name: str, window: int) -> Optional[float]:
        """
        Mean of the newest `window` values of a feature.

        Returns:
            The mean, or None when fewer than `window` values are stored
        """
        series = self._series[name]
        if window <= 0 or len(series) < window:
            return None
        total = 0.0
        for i in range(len(series) - window, len(series)):
            total += series[i][0]
        return total / window

    def is_ready(self, window: int) -> bool:
        """True once every tracked feature holds at least `window` values."""
        return all(len(series) >= window for series in self._series.values())

    def latest(self, name: str, offset: int = 0) -> Optional[float]:
        """
        Value `offset` steps before the newest one (0 = newest).

        Returns:
            The value, or None if the series is too short
        """
        series = self._series[name]
        if offset < 0 or len(series) <= offset:
            return None
        return series[len(series) - 1 - offset][0]

    def last_time(self) -> float:
        """Time of the newest recorded entry (0.0 when empty)."""
        latest = 0.0
        for series in self._series.values():
            if series:
                latest = max(latest, series[-1][1])
        return latest

    def values(self, name: str) -> List[float]:
        return [value for value, _ in self._series[name]]

    def __len__(self) -> int:
        return min((len(series) for series in self._series.values()), default=0)

    def clear(self) -> None:
        for series in self._series.values():
            series.clear()
