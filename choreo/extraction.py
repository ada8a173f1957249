"""
Feature Extraction Module

Extract per-window spectral and temporal features: energy, loudness
(total + Bark band specific loudness), RMS and spectral flatness.

Extractors are callables `extract(window, sample_rate) -> Dict` so the
frame adapter never depends on how a feature is computed. Two are provided:
- SpectralExtractor: Hann-windowed FFT features with a 24-band Bark
  loudness breakdown
- SimpleExtractor: time-domain only, no loudness breakdown; used by the
  degraded fallback pass
"""

from typing import Dict, Tuple

import librosa
import numpy as np
from scipy import signal as scipy_signal

import config
from choreo.errors import FeatureExtractionFailure

# Small constant keeping log/divide operations finite on silent windows
EPSILON: float = 1e-10


# =============================================================================
# FEATURE FUNCTIONS
# =============================================================================

def compute_energy(window: np.ndarray) -> float:
    """Sum of squared samples."""
    return float(np.sum(window ** 2))


def compute_rms(window: np.ndarray) -> float:
    """Root mean square of the samples (one librosa frame spanning the window)."""
    size = len(window)
    rms = librosa.feature.rms(y=window, frame_length=size, hop_length=size, center=False)
    return float(rms[0, 0])


def compute_amplitude_spectrum(window: np.ndarray, window_fn: np.ndarray) -> np.ndarray:
    """
    Magnitude spectrum of one frame.

    Parameters:
        window: Frame samples, length N
        window_fn: Analysis window applied by the STFT, length N

    Returns:
        Array of N // 2 bin magnitudes (Nyquist bin dropped)
    """
    n = len(window)
    stft = librosa.stft(window, n_fft=n, hop_length=n, window=window_fn, center=False)
    return np.abs(stft[:n // 2, 0])


def compute_spectral_flatness(amp_spectrum: np.ndarray) -> float:
    """
    Spectral flatness: geometric mean over arithmetic mean of the spectrum.

    Returns 0.0 for an all-zero spectrum instead of NaN.

    Parameters:
        amp_spectrum: Magnitude spectrum

    Returns:
        Flatness in [0, 1]
    """
    if len(amp_spectrum) == 0:
        return 0.0

    if float(np.mean(amp_spectrum)) <= EPSILON:
        return 0.0

    flatness = librosa.feature.spectral_flatness(S=amp_spectrum[:, None], amin=EPSILON, power=1.0)
    return float(flatness[0, 0])


def compute_bark_scale(length: int, sample_rate: int, buffer_size: int) -> np.ndarray:
    """
    Bark value of each FFT bin center frequency.

    bark(f) = 13 * atan(f / 1315.8) + 3.5 * atan((f / 7518)^2)

    Parameters:
        length: Number of bins to map
        sample_rate: Sample rate in Hz
        buffer_size: FFT size the bins come from

    Returns:
        Array of Bark values (length,)
    """
    freqs = np.arange(length) * sample_rate / float(buffer_size)
    return 13.0 * np.arctan(freqs / 1315.8) + 3.5 * np.arctan((freqs / 7518.0) ** 2)


def compute_bark_band_limits(bark_scale: np.ndarray, spectrum_length: int, num_bands: int) -> np.ndarray:
    """
    Split spectrum bins into equal-width Bark bands.

    Band b covers bins [limits[b], limits[b + 1]).

    Parameters:
        bark_scale: Bark value per bin (at least spectrum_length long)
        spectrum_length: Number of bins in the amplitude spectrum
        num_bands: Number of Bark bands

    Returns:
        Integer array of num_bands + 1 bin limits
    """
    limits = np.zeros(num_bands + 1, dtype=np.int64)
    top_bark = bark_scale[spectrum_length - 1]
    band_width = top_bark / num_bands

    current_band = 1
    band_end = band_width
    for i in range(spectrum_length):
        while bark_scale[i] > band_end and current_band < num_bands:
            limits[current_band] = i
            current_band += 1
            band_end = current_band * band_width

    # Bands never reached keep the last assigned limit (empty bands)
    for band in range(current_band, num_bands):
        limits[band] = limits[current_band - 1]
    limits[num_bands] = spectrum_length - 1
    return limits


def compute_loudness(
    amp_spectrum: np.ndarray,
    band_limits: np.ndarray,
    exponent: float = config.SPECIFIC_LOUDNESS_EXPONENT
) -> Tuple[float, np.ndarray]:
    """
    Total and per-band specific loudness.

    specific[b] = (sum of magnitudes in band b) ^ exponent

    Parameters:
        amp_spectrum: Magnitude spectrum
        band_limits: Output of compute_bark_band_limits
        exponent: Compressive loudness exponent

    Returns:
        Tuple of (total_loudness, specific_loudness)
    """
    cumulative = np.concatenate(([0.0], np.cumsum(amp_spectrum, dtype=np.float64)))
    band_sums = cumulative[band_limits[1:]] - cumulative[band_limits[:-1]]
    specific = np.power(np.maximum(band_sums, 0.0), exponent)
    return float(np.sum(specific)), specific


# =============================================================================
# EXTRACTORS
# =============================================================================

class SpectralExtractor:
    """
    Hann-windowed FFT feature extractor with Bark loudness breakdown.

    Window functions and Bark band limits are cached per (window size,
    sample rate) so repeated calls on one pass cost one FFT each.
    """

    def __init__(self, num_bark_bands: int = config.NUM_BARK_BANDS):
        if num_bark_bands <= 0:
            raise ValueError(f"num_bark_bands must be positive, got {num_bark_bands}")
        self.num_bark_bands = num_bark_bands
        self._windows: Dict[int, np.ndarray] = {}
        self._band_limits: Dict[Tuple[int, int], np.ndarray] = {}

    def _hann(self, size: int) -> np.ndarray:
        if size not in self._windows:
            self._windows[size] = scipy_signal.windows.hann(size, sym=True)
        return self._windows[size]

    def _limits(self, size: int, sample_rate: int) -> np.ndarray:
        key = (size, sample_rate)
        if key not in self._band_limits:
            bark_scale = compute_bark_scale(size, sample_rate, size)
            self._band_limits[key] = compute_bark_band_limits(bark_scale, size // 2, self.num_bark_bands)
        return self._band_limits[key]

    def __call__(self, window: np.ndarray, sample_rate: int) -> Dict:
        """
        Extract features from one frame.

        Parameters:
            window: Frame samples (already zero padded to the window size)
            sample_rate: Sample rate in Hz

        Returns:
            Dictionary with energy, loudness_total, loudness_specific, rms,
            spectral_flatness

        Raises:
            FeatureExtractionFailure: If the frame is too short or not finite
        """
        size = len(window)
        if size < 4:
            raise FeatureExtractionFailure(f"Window too short for spectral analysis: {size} samples")
        if not np.isfinite(window).all():
            raise FeatureExtractionFailure("Window contains NaN or infinite samples")

        hann = self._hann(size)
        windowed = window * hann
        amp_spectrum = compute_amplitude_spectrum(window, hann)
        total, specific = compute_loudness(amp_spectrum, self._limits(size, sample_rate))

        return {
            'energy': compute_energy(windowed),
            'loudness_total': total,
            'loudness_specific': tuple(float(v) for v in specific),
            'rms': compute_rms(windowed),
            'spectral_flatness': compute_spectral_flatness(amp_spectrum)
        }


class SimpleExtractor:
    """
    Time-domain extractor for the degraded fallback pass.

    No loudness breakdown is produced, so band energies fall back to a fixed
    split of the frame energy. Flatness is measured on the rectified samples.
    """

    def __call__(self, window: np.ndarray, sample_rate: int) -> Dict:
        if len(window) == 0:
            raise FeatureExtractionFailure("Empty window")
        if not np.isfinite(window).all():
            raise FeatureExtractionFailure("Window contains NaN or infinite samples")

        energy = compute_energy(window)
        return {
            'energy': energy,
            'loudness_total': energy ** config.SPECIFIC_LOUDNESS_EXPONENT,
            'loudness_specific': None,
            'rms': compute_rms(window),
            'spectral_flatness': compute_spectral_flatness(np.abs(window))
        }
