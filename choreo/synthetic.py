"""
Synthetic Audio Generators

Deterministic test signals with known structure, used by the test suite,
the CLI demo mode and the WAV fixture generator. No audio files required.
"""

from typing import Tuple

import numpy as np

SAMPLE_RATE: int = 22050


def _normalize(audio: np.ndarray) -> np.ndarray:
    peak = np.max(np.abs(audio))
    if peak > 0:
        audio = audio / peak
    return audio.astype(np.float32)


def _kick(sr: int, length_sec: float = 0.1, freq: float = 60.0, decay: float = 20.0) -> np.ndarray:
    """Exponentially decaying low sine burst."""
    t = np.arange(int(sr * length_sec)) / sr
    return np.exp(-t * decay) * np.sin(2 * np.pi * freq * t)


def generate_silence(duration: float = 2.0, sr: int = SAMPLE_RATE) -> np.ndarray:
    """All-zero signal."""
    return np.zeros(int(duration * sr), dtype=np.float32)


def generate_click_track(
    duration: float = 6.0,
    sr: int = SAMPLE_RATE,
    interval: float = 0.5,
    click_amplitude: float = 0.9,
    noise_floor: float = 0.001,
    seed: int = 0
) -> np.ndarray:
    """
    Broadband clicks at an exact interval over a quiet noise floor.

    Each click is 64 samples of decaying white noise, so every band and
    the spectral flux jump at the same moments.

    Parameters:
        duration: Duration in seconds
        sr: Sample rate
        interval: Seconds between clicks (0.5 = 120 BPM)
        click_amplitude: Peak click amplitude
        noise_floor: Background noise amplitude
        seed: Random seed

    Returns:
        Audio array (not normalized)
    """
    rng = np.random.default_rng(seed)
    samples = int(duration * sr)
    audio = noise_floor * rng.standard_normal(samples)

    click_len = 64
    envelope = np.exp(-np.arange(click_len) / 12.0)
    click = click_amplitude * envelope * rng.uniform(-1.0, 1.0, click_len)

    step = int(round(interval * sr))
    for start in range(0, samples, step):
        end = min(samples, start + click_len)
        audio[start:end] += click[:end - start]

    return audio.astype(np.float32)


def generate_kick_pattern(
    duration: float = 8.0,
    sr: int = SAMPLE_RATE,
    bpm: float = 120.0,
    tone_freq: float = 600.0,
    tone_amplitude: float = 0.2
) -> np.ndarray:
    """
    Steady tone with a 60 Hz kick on every beat.

    Parameters:
        duration: Duration in seconds
        sr: Sample rate
        bpm: Kick tempo
        tone_freq: Frequency of the sustained tone
        tone_amplitude: Amplitude of the sustained tone

    Returns:
        Audio array, peak normalized
    """
    samples = int(duration * sr)
    t = np.arange(samples) / sr
    audio = tone_amplitude * np.sin(2 * np.pi * tone_freq * t)

    kick = 0.8 * _kick(sr)
    step = int(round(60.0 / bpm * sr))
    for start in range(0, samples, step):
        end = min(samples, start + len(kick))
        audio[start:end] += kick[:end - start]

    return _normalize(audio)


def generate_build_then_drop(duration: float = 12.0, sr: int = SAMPLE_RATE) -> Tuple[np.ndarray, float]:
    """
    Build-then-drop pattern.

    First half: rising amplitude sine sweep with increasing click density.
    Second half: sudden loud tone plus a 120 BPM bass kick.

    Parameters:
        duration: Total duration in seconds
        sr: Sample rate

    Returns:
        Tuple of (audio, drop_time_expected)
    """
    samples = int(duration * sr)
    half_point = samples // 2
    audio = np.zeros(samples, dtype=np.float64)

    # Build section: rising sweep
    t = np.arange(half_point) / sr
    progress = np.arange(half_point) / half_point
    freq = 200 + progress * 300
    amplitude = 0.1 + progress * 0.4
    audio[:half_point] = amplitude * np.sin(2 * np.pi * freq * t)

    # Increasing transient rate
    position = 0
    while position < half_point:
        p = position / half_point
        audio[position] += 0.2 + p * 0.3
        position += int(sr / (2 + p * 8))

    # Drop section: loud tone + kick every beat
    t_drop = np.arange(samples - half_point) / sr
    audio[half_point:] = 0.7 * np.sin(2 * np.pi * 600 * t_drop)
    kick = 0.8 * _kick(sr)
    step = int(sr * 0.5)
    for start in range(half_point, samples, step):
        end = min(samples, start + len(kick))
        audio[start:end] += kick[:end - start]

    return _normalize(audio), half_point / sr


def generate_section_contrast(duration: float = 10.0, sr: int = SAMPLE_RATE) -> Tuple[np.ndarray, float]:
    """
    Quiet verse then loud chorus.

    Parameters:
        duration: Total duration in seconds
        sr: Sample rate

    Returns:
        Tuple of (audio, transition_time_expected)
    """
    samples = int(duration * sr)
    transition_point = samples // 2
    audio = np.zeros(samples, dtype=np.float64)

    # Quiet verse
    t = np.arange(transition_point) / sr
    audio[:transition_point] = 0.15 * np.sin(2 * np.pi * 220 * t)

    # Loud chorus with rhythmic impulses every 0.25s
    t = np.arange(samples - transition_point) / sr
    audio[transition_point:] = (
        0.5 * np.sin(2 * np.pi * 440 * t) +
        0.3 * np.sin(2 * np.pi * 880 * t) +
        0.2 * np.sin(2 * np.pi * 1760 * t)
    )
    index = np.arange(transition_point, samples)
    audio[transition_point:] += np.where(index % int(sr * 0.25) < sr * 0.05, 0.4, 0.0)

    return _normalize(audio), transition_point / sr


def generate_repetitive_loop(duration: float = 10.0, sr: int = SAMPLE_RATE) -> np.ndarray:
    """
    2-second A major triad loop tiled to the requested duration.

    Returns:
        Audio array, peak normalized
    """
    samples = int(duration * sr)
    loop_samples = int(2.0 * sr)
    t = np.arange(loop_samples) / sr
    loop = (
        0.4 * np.sin(2 * np.pi * 440 * t) +
        0.3 * np.sin(2 * np.pi * 554 * t) +
        0.2 * np.sin(2 * np.pi * 659 * t)
    )
    n_loops = int(np.ceil(samples / loop_samples))
    return _normalize(np.tile(loop, n_loops)[:samples])
