"""
Audio I/O Module

Handles audio decoding into sample buffers, buffer validation, and the
down-sampled waveform used for visualization.
All operations are deterministic and reproducible.
"""

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

import librosa
import numpy as np

import config
from choreo.errors import DecodeFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SampleBuffer:
    """
    Decoded PCM audio.

    Attributes:
        channels: float32 array of shape (n_channels, n_samples)
        sample_rate: Sample rate in Hz
    """
    channels: np.ndarray
    sample_rate: int

    @property
    def num_channels(self) -> int:
        return int(self.channels.shape[0])

    @property
    def num_samples(self) -> int:
        return int(self.channels.shape[1])

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return self.num_samples / float(self.sample_rate)

    def channel(self, index: int = 0) -> np.ndarray:
        """Samples of one channel (1D view)."""
        return self.channels[index]


def to_channels_first(audio: np.ndarray) -> np.ndarray:
    """
    Normalize an audio array to (channels, samples) layout.

    Parameters:
        audio: 1D mono array or 2D multi-channel array in either layout

    Returns:
        2D array of shape (n_channels, n_samples)

    Raises:
        ValueError: If audio shape is unexpected
    """
    audio = np.asarray(audio)

    # Guard: mono
    if audio.ndim == 1:
        return audio[np.newaxis, :]

    # Guard: unexpected shape
    if audio.ndim != 2:
        raise ValueError(f"Unexpected audio shape: {audio.shape}")

    # If shape[0] > shape[1], format is (samples, channels)
    if audio.shape[0] > audio.shape[1]:
        return audio.T
    return audio


def buffer_from_array(audio: np.ndarray, sample_rate: int) -> SampleBuffer:
    """
    Wrap an in-memory array as a SampleBuffer.

    Parameters:
        audio: Mono or multi-channel samples in [-1.0, 1.0]
        sample_rate: Sample rate in Hz

    Returns:
        SampleBuffer with float32 channels-first samples
    """
    channels = np.ascontiguousarray(to_channels_first(audio), dtype=np.float32)
    return SampleBuffer(channels=channels, sample_rate=int(sample_rate))


def load_audio(file_path: Union[str, Path], target_sr: Optional[int] = None) -> SampleBuffer:
    """
    Decode an audio file into a SampleBuffer.

    Uses librosa (soundfile / audioread backends), so wav, flac, ogg and mp3
    are supported. All channels are kept; analysis only reads channel 0.

    Parameters:
        file_path: Path to audio file
        target_sr: Target sample rate (None = use native rate)

    Returns:
        SampleBuffer

    Raises:
        FileNotFoundError: If file doesn't exist
        DecodeFailure: If the file cannot be decoded
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Audio file not found: {path}")

    try:
        audio, sr = librosa.load(str(path), sr=target_sr, mono=False)
    except Exception as exc:
        raise DecodeFailure(f"Could not decode {path}: {exc}") from exc

    logger.info("Loaded %s (%d Hz, shape %s)", path.name, sr, audio.shape)
    return buffer_from_array(audio, sr)


def decode_bytes(data: bytes, target_sr: Optional[int] = None) -> SampleBuffer:
    """
    Decode an in-memory encoded audio stream into a SampleBuffer.

    Parameters:
        data: Encoded audio file contents
        target_sr: Target sample rate (None = use native rate)

    Returns:
        SampleBuffer

    Raises:
        DecodeFailure: If the bytes cannot be decoded
    """
    if not data:
        raise DecodeFailure("Audio byte stream is empty")

    try:
        audio, sr = librosa.load(io.BytesIO(data), sr=target_sr, mono=False)
    except Exception as exc:
        raise DecodeFailure(f"Could not decode audio byte stream: {exc}") from exc

    return buffer_from_array(audio, sr)


def validate_buffer(buffer: SampleBuffer, max_duration: Optional[float] = None) -> None:
    """
    Validate a sample buffer for processing.

    Parameters:
        buffer: SampleBuffer to validate
        max_duration: Maximum allowed duration in seconds (None = use config)

    Raises:
        DecodeFailure: If the buffer is unusable
    """
    if max_duration is None:
        max_duration = config.MAX_TRACK_DURATION_SEC

    if buffer.sample_rate <= 0:
        raise DecodeFailure(f"Invalid sample rate: {buffer.sample_rate}")

    if buffer.channels.ndim != 2 or buffer.num_channels == 0:
        raise DecodeFailure(f"Unexpected buffer shape: {buffer.channels.shape}")

    if buffer.num_samples == 0:
        raise DecodeFailure("Audio buffer is empty")

    if not np.isfinite(buffer.channel(0)).all():
        raise DecodeFailure("Audio contains NaN or infinite values")

    if buffer.duration > max_duration:
        raise DecodeFailure(
            f"Audio duration ({buffer.duration:.1f}s) exceeds maximum "
            f"({max_duration:.1f}s)"
        )


def extract_waveform(
    samples: np.ndarray,
    sample_rate: int,
    target_points: int = config.WAVEFORM_POINTS
) -> List[Dict[str, float]]:
    """
    Down-sample a channel to peak amplitudes for waveform display.

    Bucket size is max(1, n // target_points); each bucket keeps its max
    absolute sample. Values are divided by the global max when it is
    positive, so silence stays at zero.

    Parameters:
        samples: 1D channel samples
        sample_rate: Sample rate in Hz
        target_points: Approximate number of output points

    Returns:
        List of {'time': seconds, 'value': amplitude in [0, 1]}
    """
    samples = np.abs(np.asarray(samples, dtype=np.float64))
    n = len(samples)
    if n == 0:
        return []

    bucket = max(1, n // target_points)
    starts = np.arange(0, n, bucket)
    peaks = np.maximum.reduceat(samples, starts)

    max_sample = float(samples.max())
    if max_sample > 0:
        peaks = peaks / max_sample

    return [
        {'time': float(start) / sample_rate, 'value': float(peak)}
        for start, peak in zip(starts, peaks)
    ]
