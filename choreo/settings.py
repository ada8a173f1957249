"""
Analysis Settings Module - All Tunable Analysis Parameters

Settings are an immutable record: one analysis pass reads a single
instance from start to finish. Changing a value means building a new
instance with `with_overrides`, which rejects unknown field names.

USAGE:
    from choreo.settings import AnalysisSettings, DEFAULT_SETTINGS

    # Use default settings
    settings = DEFAULT_SETTINGS

    # Create custom settings
    custom = DEFAULT_SETTINGS.with_overrides(
        hop_size=1024,
        low_freq_onset_threshold=1.5
    )
"""

from dataclasses import dataclass, fields, replace
from typing import Dict, FrozenSet, Set, Tuple

import config


# Fields that only affect transient selection; changing them alone can be
# served from cached raw candidates without re-running feature extraction
REFILTERABLE_FIELDS: FrozenSet[str] = frozenset({
    'low_freq_onset_threshold',
    'mid_freq_onset_threshold',
    'high_freq_onset_threshold',
    'onset_min_interval',
})

BANDS: Tuple[str, str, str] = ('low', 'mid', 'high')


@dataclass(frozen=True)
class AnalysisSettings:
    """
    Complete analysis configuration for one pass.

    Attributes:
        fft_window_size: Samples per analysis window (default 2048)
        hop_size: Samples between window starts (default 512, must be < window)
        energy_threshold: Energy change ratio for energy peaks (default 0.7)
        spectral_flux_threshold: Flux change ratio for flux spikes (default 2.0)
        low_frequency_threshold: Absolute low band energy for bass events (default 0.8)
        analysis_window_size: Trend comparison window in frames (default 5)
        min_time_between_events: Same-kind event separation in seconds (default 0.3)
        onset_min_interval: Same-band transient separation in seconds (default 0.0)
        low_freq_onset_threshold: Low band onset ratio threshold (default 1.212)
        mid_freq_onset_threshold: Mid band onset ratio threshold (default 1.158)
        high_freq_onset_threshold: High band onset ratio threshold (default 1.622)
        low_band_range: Inclusive Bark band indices for low band (default (0, 3))
        mid_band_range: Inclusive Bark band indices for mid band (default (4, 12))
        high_band_range: Inclusive Bark band indices for high band (default (13, 23))
        moderate_change_threshold: Moderate dynamic tier / band activity ratio (default 1.3)
        significant_change_threshold: Significant dynamic tier ratio (default 1.8)
        dramatic_change_threshold: Dramatic dynamic tier ratio (default 2.5)
        timbre_change_threshold: Relative flatness change for timbre events (default 0.15)
    """
    fft_window_size: int = config.FFT_WINDOW_SIZE
    hop_size: int = config.HOP_SIZE
    energy_threshold: float = config.ENERGY_THRESHOLD
    spectral_flux_threshold: float = config.SPECTRAL_FLUX_THRESHOLD
    low_frequency_threshold: float = config.LOW_FREQUENCY_THRESHOLD
    analysis_window_size: int = config.ANALYSIS_WINDOW_SIZE
    min_time_between_events: float = config.MIN_TIME_BETWEEN_EVENTS
    onset_min_interval: float = config.ONSET_MIN_INTERVAL
    low_freq_onset_threshold: float = config.LOW_FREQ_ONSET_THRESHOLD
    mid_freq_onset_threshold: float = config.MID_FREQ_ONSET_THRESHOLD
    high_freq_onset_threshold: float = config.HIGH_FREQ_ONSET_THRESHOLD
    low_band_range: Tuple[int, int] = config.LOW_BAND_RANGE
    mid_band_range: Tuple[int, int] = config.MID_BAND_RANGE
    high_band_range: Tuple[int, int] = config.HIGH_BAND_RANGE
    moderate_change_threshold: float = config.MODERATE_CHANGE_THRESHOLD
    significant_change_threshold: float = config.SIGNIFICANT_CHANGE_THRESHOLD
    dramatic_change_threshold: float = config.DRAMATIC_CHANGE_THRESHOLD
    timbre_change_threshold: float = config.TIMBRE_CHANGE_THRESHOLD

    def onset_thresholds(self) -> Dict[str, float]:
        """Get per-band onset thresholds as dictionary keyed by band name."""
        return {
            'low': self.low_freq_onset_threshold,
            'mid': self.mid_freq_onset_threshold,
            'high': self.high_freq_onset_threshold
        }

    def band_ranges(self) -> Dict[str, Tuple[int, int]]:
        """Get per-band Bark index ranges as dictionary keyed by band name."""
        return {
            'low': tuple(self.low_band_range),
            'mid': tuple(self.mid_band_range),
            'high': tuple(self.high_band_range)
        }

    def history_length(self) -> int:
        """Bounded length of each feature history series."""
        return config.get_history_length(self.analysis_window_size)

    def with_overrides(self, **overrides) -> 'AnalysisSettings':
        """
        Build a new settings record with some fields replaced.

        Parameters:
            **overrides: Field name to new value

        Returns:
            New AnalysisSettings instance

        Raises:
            TypeError: If an override names an unknown field
        """
        return replace(self, **overrides)

    def degraded(self) -> 'AnalysisSettings':
        """
        Settings for the best-effort fallback pass: doubled window and hop.

        Returns:
            New AnalysisSettings instance
        """
        return replace(
            self,
            fft_window_size=self.fft_window_size * 2,
            hop_size=self.hop_size * 2
        )

    def to_dict(self) -> Dict:
        """
        Export all parameters as a flat dictionary for JSON serialization.

        Returns:
            Dictionary with all parameter values
        """
        return {
            # Frame params
            'fft_window_size': self.fft_window_size,
            'hop_size': self.hop_size,
            'analysis_window_size': self.analysis_window_size,

            # Legacy detector thresholds
            'energy_threshold': self.energy_threshold,
            'spectral_flux_threshold': self.spectral_flux_threshold,
            'low_frequency_threshold': self.low_frequency_threshold,

            # Gating
            'min_time_between_events': self.min_time_between_events,
            'onset_min_interval': self.onset_min_interval,

            # Onset thresholds
            'low_freq_onset_threshold': self.low_freq_onset_threshold,
            'mid_freq_onset_threshold': self.mid_freq_onset_threshold,
            'high_freq_onset_threshold': self.high_freq_onset_threshold,

            # Band ranges
            'low_band_range': list(self.low_band_range),
            'mid_band_range': list(self.mid_band_range),
            'high_band_range': list(self.high_band_range),

            # Dynamic tiers and timbre
            'moderate_change_threshold': self.moderate_change_threshold,
            'significant_change_threshold': self.significant_change_threshold,
            'dramatic_change_threshold': self.dramatic_change_threshold,
            'timbre_change_threshold': self.timbre_change_threshold,
        }


# Default settings instance
DEFAULT_SETTINGS = AnalysisSettings()


def changed_fields(old: AnalysisSettings, new: AnalysisSettings) -> Set[str]:
    """
    Names of the fields whose values differ between two settings records.

    Parameters:
        old: Settings of the previous pass
        new: Requested settings

    Returns:
        Set of field names
    """
    return {
        f.name for f in fields(AnalysisSettings)
        if getattr(old, f.name) != getattr(new, f.name)
    }


def is_refilterable_change(old: AnalysisSettings, new: AnalysisSettings) -> bool:
    """True if only transient-selection fields differ between old and new."""
    return changed_fields(old, new) <= REFILTERABLE_FIELDS


def validate_settings(settings: AnalysisSettings) -> bool:
    """
    Validate settings for consistency.

    Parameters:
        settings: AnalysisSettings instance to validate

    Returns:
        True if settings are valid

    Raises:
        ValueError: If settings are invalid
    """
    # Check positive values
    if settings.fft_window_size <= 0:
        raise ValueError("fft_window_size must be positive")
    if settings.hop_size <= 0:
        raise ValueError("hop_size must be positive")
    if settings.hop_size >= settings.fft_window_size:
        raise ValueError(
            f"hop_size ({settings.hop_size}) must be smaller than "
            f"fft_window_size ({settings.fft_window_size})"
        )
    if settings.analysis_window_size <= 0:
        raise ValueError("analysis_window_size must be positive")

    # Check non-negative intervals
    if settings.min_time_between_events < 0:
        raise ValueError("min_time_between_events must be non-negative")
    if settings.onset_min_interval < 0:
        raise ValueError("onset_min_interval must be non-negative")

    # Onset thresholds divide the band ratios
    for band, threshold in settings.onset_thresholds().items():
        if threshold <= 0:
            raise ValueError(f"{band}_freq_onset_threshold must be positive")

    for band, band_range in settings.band_ranges().items():
        if len(band_range) != 2:
            raise ValueError(f"{band}_band_range must be a (start, end) pair")
        start, end = band_range
        if start < 0 or end < start:
            raise ValueError(f"{band}_band_range must be ascending and non-negative, got {band_range}")

    if not (settings.moderate_change_threshold
            <= settings.significant_change_threshold
            <= settings.dramatic_change_threshold):
        raise ValueError("Dynamic change thresholds must satisfy moderate <= significant <= dramatic")

    return True


# Validate default settings on import
validate_settings(DEFAULT_SETTINGS)
