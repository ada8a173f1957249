"""
choreo-signals - Configuration

All tunable parameters, thresholds, and constants with documentation.
Every default value includes rationale.
"""

from typing import Tuple

# =============================================================================
# FRAME-LEVEL PARAMETERS
# =============================================================================

# Analysis window size (samples)
# Why: 2048 samples at 44100 Hz ≈ 46ms, long enough for a stable Bark-band
#      loudness breakdown while still resolving individual drum hits
FFT_WINDOW_SIZE: int = 2048

# Hop between consecutive windows (samples)
# Why: 512 samples ≈ 11.6ms at 44100 Hz, 4x overlap; fine enough for
#      animation sync at 60 fps without exploding the frame count
HOP_SIZE: int = 512

# Number of Bark bands in the loudness breakdown
# Why: 24 critical bands cover the audible range, matches the standard
#      perceptual loudness model used for the band ranges below
NUM_BARK_BANDS: int = 24

# Exponent applied to per-band energy to get specific loudness
# Why: 0.23 is the Zwicker-style compressive exponent used by common
#      loudness feature extractors
SPECIFIC_LOUDNESS_EXPONENT: float = 0.23

# Minimum spectral flux value
# Why: 0.01 keeps the flux moving average strictly positive so the
#      flux change ratio never divides by zero
FLUX_FLOOR: float = 0.01

# =============================================================================
# FREQUENCY BAND RANGES (inclusive Bark band indices)
# =============================================================================

# Why: bands 0-3 ≈ 20-250Hz (kick drums, bass)
LOW_BAND_RANGE: Tuple[int, int] = (0, 3)

# Why: bands 4-12 ≈ 250Hz-2kHz (snares, vocals)
MID_BAND_RANGE: Tuple[int, int] = (4, 12)

# Why: bands 13-23 ≈ 2kHz-8kHz+ (hi-hats, cymbals)
HIGH_BAND_RANGE: Tuple[int, int] = (13, 23)

# Fallback split of total energy when no loudness breakdown is available
# Why: bass dominates the energy of most popular music mixes
FALLBACK_BAND_SPLIT: Tuple[float, float, float] = (0.4, 0.3, 0.3)

# =============================================================================
# TREND / HISTORY PARAMETERS
# =============================================================================

# Trend-comparison window (frames)
# Why: 5 frames ≈ 58ms at default hop, short enough that a drum hit
#      stands out against its local average
ANALYSIS_WINDOW_SIZE: int = 5

# History bound as a multiple of the trend window
# Why: 10x keeps memory constant for long tracks while leaving slack
#      for window size changes between passes
HISTORY_WINDOW_MULTIPLIER: int = 10

# Floor applied to moving averages before computing change ratios
# Why: 0.01 avoids divide-by-zero in silent passages without
#      inflating ratios for quiet but non-silent material
AVERAGE_EPSILON: float = 0.01

# =============================================================================
# DETECTION THRESHOLDS
# =============================================================================

# Energy change ratio for energy peaks
# Why: 0.7 is permissive on purpose; peaks only matter when they
#      coincide with a bass event (drop detection)
ENERGY_THRESHOLD: float = 0.7

# Spectral flux change ratio for flux spikes (beat candidates)
# Why: 2.0 = flux doubles against its recent average, a clear attack
SPECTRAL_FLUX_THRESHOLD: float = 2.0

# Absolute low band energy for bass events
# Why: 0.8 in specific-loudness units separates sustained bass from rumble
LOW_FREQUENCY_THRESHOLD: float = 0.8

# Minimum time between events of the same kind (seconds)
# Why: 0.3s ≈ a sixteenth note at 50 BPM; avoids clusters for one hit
MIN_TIME_BETWEEN_EVENTS: float = 0.3

# Minimum time between transients in the same band (seconds)
# Why: 0.0 lets every frame-level crossing through; consolidation
#      handles duplicates afterwards
ONSET_MIN_INTERVAL: float = 0.0

# Per-band onset thresholds (band change ratio must exceed these)
# Why: tuned by ear on electronic and acoustic material; high band is
#      noisier so it needs a larger jump
LOW_FREQ_ONSET_THRESHOLD: float = 1.212
MID_FREQ_ONSET_THRESHOLD: float = 1.158
HIGH_FREQ_ONSET_THRESHOLD: float = 1.622

# Dynamic change tiers on the RMS change ratio
# Why: 1.3 / 1.8 / 2.5 roughly correspond to +2.3 / +5.1 / +8 dB jumps
MODERATE_CHANGE_THRESHOLD: float = 1.3
SIGNIFICANT_CHANGE_THRESHOLD: float = 1.8
DRAMATIC_CHANGE_THRESHOLD: float = 2.5

# Relative spectral flatness change for timbre events
# Why: 0.15 = 15% relative change, noticeable shift between tonal
#      and noisy textures
TIMBRE_CHANGE_THRESHOLD: float = 0.15

# Absolute frame-to-frame flatness jump for spectrum shift events
# Why: 0.2 on a [0, 1] measure is an abrupt texture switch
SPECTRUM_SHIFT_THRESHOLD: float = 0.2

# Time offset between same-frame transients of different bands (seconds)
# Why: 1ms keeps timestamps distinct for consumers keyed on time
SIMULTANEOUS_TRANSIENT_OFFSET_SEC: float = 0.001

# =============================================================================
# DROP DETECTION PARAMETERS
# =============================================================================

# Max distance between an energy peak and a bass event (seconds)
# Why: 0.1s covers a couple of frames of detection jitter
DROP_BASS_WINDOW_SEC: float = 0.1

# Minimum spacing between accepted drops (seconds)
# Why: 2s ≈ one bar at 120 BPM; one drop per bar is plenty for animation
DROP_MIN_SPACING_SEC: float = 2.0

# =============================================================================
# TEMPO / BEAT GRID PARAMETERS
# =============================================================================

# Minimum number of timestamps to attempt tempo estimation
# Why: 5 timestamps = 4 intervals, the least that makes a mode meaningful
MIN_TEMPO_EVENTS: int = 5

# Interval histogram bin width (seconds)
# Why: 10ms bins absorb frame quantization at common hop sizes
TEMPO_BIN_SEC: float = 0.01

# Accepted BPM range
# Why: outside 60-200 BPM the estimate is usually a half/double error
TEMPO_MIN_BPM: int = 60
TEMPO_MAX_BPM: int = 200

# External tracker confidence above which its tempo is trusted
# Why: 0.5 = the tracker agrees with itself more often than not
TRACKER_MIN_CONFIDENCE: float = 0.5

# Beats per bar for grid synthesis
# Why: 4/4 covers the vast majority of music this is used with
BEATS_PER_BAR: int = 4

# Grid beat intensities
DOWNBEAT_INTENSITY: float = 1.0
BEAT_INTENSITY: float = 0.7

# =============================================================================
# SCHEDULING PARAMETERS
# =============================================================================

# Frames processed between cooperative suspension points
# Why: 100 frames ≈ 1.2s of audio, keeps a host UI responsive
YIELD_EVERY_FRAMES: int = 100

# =============================================================================
# OUTPUT PARAMETERS
# =============================================================================

# Target number of waveform points for visualization
# Why: 2000 points is enough detail for a full-width waveform display
WAVEFORM_POINTS: int = 2000

# JSON schema version
# Why: Versioning allows future format changes while maintaining compatibility
SCHEMA_VERSION: str = "1.0.0"

# Seed for randomized animation hints
# Why: Fixed seed keeps exported timelines reproducible
ANIMATION_SEED: int = 0

# Plot resolution (dots per inch)
PLOT_DPI: int = 150

# Plot figure size (width, height in inches)
PLOT_FIGSIZE: tuple = (14, 8)

# Maximum track duration to process (seconds)
# Why: 20 minutes covers long DJ edits, prevents runaway analysis
MAX_TRACK_DURATION_SEC: float = 1200.0


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_history_length(analysis_window_size: int = ANALYSIS_WINDOW_SIZE) -> int:
    """
    Calculate the bounded history length for a trend window.

    Parameters:
        analysis_window_size: Trend comparison window (frames)

    Returns:
        Maximum number of entries kept per feature
    """
    return analysis_window_size * HISTORY_WINDOW_MULTIPLIER


def validate_config() -> bool:
    """
    Validate configuration parameters for consistency.

    Returns:
        True if config is valid

    Raises:
        ValueError: If configuration is invalid
    """
    if FFT_WINDOW_SIZE <= 0 or HOP_SIZE <= 0:
        raise ValueError("FFT_WINDOW_SIZE and HOP_SIZE must be positive")

    if HOP_SIZE >= FFT_WINDOW_SIZE:
        raise ValueError("HOP_SIZE must be smaller than FFT_WINDOW_SIZE")

    if not (0.99 <= sum(FALLBACK_BAND_SPLIT) <= 1.01):
        raise ValueError(f"FALLBACK_BAND_SPLIT must sum to 1.0, got {sum(FALLBACK_BAND_SPLIT)}")

    if not (MODERATE_CHANGE_THRESHOLD < SIGNIFICANT_CHANGE_THRESHOLD < DRAMATIC_CHANGE_THRESHOLD):
        raise ValueError("Dynamic change tiers must be strictly increasing")

    if not (0 < TEMPO_MIN_BPM < TEMPO_MAX_BPM):
        raise ValueError("TEMPO_MIN_BPM must be positive and below TEMPO_MAX_BPM")

    for name, band_range in [('LOW', LOW_BAND_RANGE), ('MID', MID_BAND_RANGE), ('HIGH', HIGH_BAND_RANGE)]:
        if band_range[0] < 0 or band_range[1] < band_range[0]:
            raise ValueError(f"{name}_BAND_RANGE must be an ascending non-negative pair")

    return True


# Validate on import
validate_config()
