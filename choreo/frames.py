"""
Frame Feature Adapter

Turns a sample buffer into a lazy, forward-only sequence of FrameFeatures:
windowing with zero padding, extractor invocation, sample-domain spectral
flux against the previous window, and low/mid/high band energies.

The sequence is not restartable mid-stream (flux keeps the previous window)
but a new call replays the whole pass from the start.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Optional, Sequence, Tuple

import numpy as np

import config
from choreo import timebase
from choreo.errors import FeatureExtractionFailure
from choreo.settings import AnalysisSettings

logger = logging.getLogger(__name__)

Extractor = Callable[[np.ndarray, int], Dict]


@dataclass(frozen=True)
class FrameFeatures:
    """
    Features of one analysis frame.

    Attributes:
        index: Frame number (start sample // hop)
        time: Frame start time in seconds
        energy: Sum of squared (windowed) samples
        loudness_total: Total loudness
        loudness_specific: Per Bark band loudness, None if unavailable
        rms: Root mean square
        spectral_flatness: Flatness in [0, 1]
        spectral_flux: Positive sample-domain difference to previous window
        low_band_energy: Loudness summed over the low band range
        mid_band_energy: Loudness summed over the mid band range
        high_band_energy: Loudness summed over the high band range
    """
    index: int
    time: float
    energy: float
    loudness_total: float
    loudness_specific: Optional[Tuple[float, ...]]
    rms: float
    spectral_flatness: float
    spectral_flux: float
    low_band_energy: float
    mid_band_energy: float
    high_band_energy: float


def extract_window(samples: np.ndarray, start: int, window_size: int) -> np.ndarray:
    """
    Copy a window of samples, zero padding past the end of the buffer.

    Parameters:
        samples: 1D channel samples
        start: First sample index
        window_size: Window length W

    Returns:
        float64 array of exactly window_size samples
    """
    window = np.zeros(window_size, dtype=np.float64)
    available = samples[start:start + window_size]
    window[:len(available)] = available
    return window


def compute_spectral_flux(current: np.ndarray, previous: Optional[np.ndarray]) -> float:
    """
    Flux between consecutive windows, floored to FLUX_FLOOR.

    flux = sqrt(sum(max(0, |cur[k]| - |prev[k]|)^2)), 0 before the floor
    when there is no previous window.

    Parameters:
        current: Current window samples
        previous: Previous window samples (None on the first frame)

    Returns:
        Flux value >= FLUX_FLOOR
    """
    if previous is None:
        return config.FLUX_FLOOR

    diff = np.maximum(np.abs(current) - np.abs(previous), 0.0)
    flux = float(np.sqrt(np.sum(diff ** 2)))
    return max(config.FLUX_FLOOR, flux)


def sum_band(specific: Sequence[float], band_range: Tuple[int, int]) -> float:
    """
    Sum specific loudness over an inclusive index range.

    Indices beyond the available bands are clamped to the last band.
    """
    max_index = len(specific) - 1
    if max_index < 0:
        return 0.0
    start = min(band_range[0], max_index)
    end = min(band_range[1], max_index)
    return float(sum(specific[start:end + 1]))


def compute_band_energies(
    loudness_specific: Optional[Sequence[float]],
    energy: float,
    band_ranges: Dict[str, Tuple[int, int]]
) -> Tuple[float, float, float]:
    """
    Low, mid and high band energies.

    Parameters:
        loudness_specific: Per-band loudness (None = unavailable)
        energy: Frame energy, used for the fallback split
        band_ranges: 'low'/'mid'/'high' inclusive index ranges

    Returns:
        Tuple of (low, mid, high)
    """
    if loudness_specific is None or len(loudness_specific) == 0:
        low_share, mid_share, high_share = config.FALLBACK_BAND_SPLIT
        return energy * low_share, energy * mid_share, energy * high_share

    return (
        sum_band(loudness_specific, band_ranges['low']),
        sum_band(loudness_specific, band_ranges['mid']),
        sum_band(loudness_specific, band_ranges['high'])
    )


def _check_extracted(extracted: Dict, frame_index: int, time: float) -> None:
    for key in ('energy', 'loudness_total', 'rms', 'spectral_flatness'):
        value = extracted.get(key)
        if value is None or not np.isfinite(value):
            raise FeatureExtractionFailure(
                f"Extractor returned invalid {key}: {value!r}",
                frame_index=frame_index,
                time=time
            )


def iter_frame_features(
    samples: np.ndarray,
    sample_rate: int,
    settings: AnalysisSettings,
    extractor: Extractor
) -> Iterator[FrameFeatures]:
    """
    Stream FrameFeatures over one channel.

    A frame whose extraction fails is logged and skipped; the previous
    window used for flux stays the last successfully processed one.

    Parameters:
        samples: 1D channel samples
        sample_rate: Sample rate in Hz
        settings: Analysis settings (window, hop, band ranges)
        extractor: Feature extraction callable

    Yields:
        FrameFeatures in time order

    Raises:
        FeatureExtractionFailure: If frames were attempted and every one failed
    """
    window_size = settings.fft_window_size
    hop_size = settings.hop_size
    band_ranges = settings.band_ranges()

    previous: Optional[np.ndarray] = None
    attempted = 0
    failed = 0

    for start in timebase.iter_frame_starts(len(samples), hop_size):
        index = start // hop_size
        time = timebase.sample_to_time(start, sample_rate)
        window = extract_window(samples, start, window_size)
        attempted += 1

        try:
            extracted = extractor(window, sample_rate)
            _check_extracted(extracted, index, time)
        except (FeatureExtractionFailure, ValueError, ArithmeticError) as exc:
            failed += 1
            logger.warning("Feature extraction failed at frame %d (%.3fs): %s", index, time, exc)
            continue

        flux = compute_spectral_flux(window, previous)
        previous = window

        specific = extracted.get('loudness_specific')
        low, mid, high = compute_band_energies(specific, extracted['energy'], band_ranges)

        yield FrameFeatures(
            index=index,
            time=time,
            energy=float(extracted['energy']),
            loudness_total=float(extracted['loudness_total']),
            loudness_specific=tuple(specific) if specific is not None else None,
            rms=float(extracted['rms']),
            spectral_flatness=float(extracted['spectral_flatness']),
            spectral_flux=flux,
            low_band_energy=low,
            mid_band_energy=mid,
            high_band_energy=high
        )

    if attempted > 0 and failed == attempted:
        raise FeatureExtractionFailure(f"Feature extraction failed for all {attempted} frames")
