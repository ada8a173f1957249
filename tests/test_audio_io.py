"""
Audio I/O Tests
"""

import numpy as np
import pytest
from scipy.io import wavfile

from choreo import audio_io, synthetic
from choreo.errors import DecodeFailure

SR = synthetic.SAMPLE_RATE


def test_mono_buffer_layout():
    buffer = audio_io.buffer_from_array(np.zeros(1000), SR)
    assert buffer.channels.shape == (1, 1000)
    assert buffer.channels.dtype == np.float32
    assert buffer.duration == pytest.approx(1000 / SR)


def test_samples_first_layout_transposed():
    """(samples, channels) arrays are transposed to channels first."""
    audio = np.zeros((1000, 2))
    audio[:, 1] = 0.5
    buffer = audio_io.buffer_from_array(audio, SR)
    assert buffer.num_channels == 2
    assert buffer.num_samples == 1000
    assert np.all(buffer.channel(1) == 0.5)


def test_unexpected_shape():
    with pytest.raises(ValueError):
        audio_io.to_channels_first(np.zeros((2, 2, 2)))


def test_load_wav(tmp_path):
    audio = synthetic.generate_click_track(duration=1.0, sr=SR)
    path = tmp_path / 'clicks.wav'
    wavfile.write(path, SR, audio)

    buffer = audio_io.load_audio(path)
    assert buffer.sample_rate == SR
    assert buffer.num_samples == len(audio)
    np.testing.assert_allclose(buffer.channel(0), audio, atol=1e-6)


def test_decode_bytes(tmp_path):
    audio = synthetic.generate_click_track(duration=0.5, sr=SR)
    path = tmp_path / 'clicks.wav'
    wavfile.write(path, SR, audio)

    buffer = audio_io.decode_bytes(path.read_bytes())
    assert buffer.num_samples == len(audio)


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        audio_io.load_audio(tmp_path / 'missing.wav')


def test_load_undecodable_file(tmp_path):
    path = tmp_path / 'broken.wav'
    path.write_bytes(b'not audio at all')
    with pytest.raises(DecodeFailure):
        audio_io.load_audio(path)


def test_decode_empty_bytes():
    with pytest.raises(DecodeFailure):
        audio_io.decode_bytes(b'')


class TestValidateBuffer:

    def test_valid(self):
        audio_io.validate_buffer(audio_io.buffer_from_array(np.zeros(100), SR))

    def test_empty(self):
        with pytest.raises(DecodeFailure, match="empty"):
            audio_io.validate_buffer(audio_io.buffer_from_array(np.zeros(0), SR))

    def test_nan(self):
        audio = np.zeros(100)
        audio[5] = np.nan
        with pytest.raises(DecodeFailure):
            audio_io.validate_buffer(audio_io.buffer_from_array(audio, SR))

    def test_too_long(self):
        buffer = audio_io.buffer_from_array(np.zeros(SR * 3), SR)
        with pytest.raises(DecodeFailure, match="exceeds"):
            audio_io.validate_buffer(buffer, max_duration=2.0)

    def test_bad_sample_rate(self):
        with pytest.raises(DecodeFailure):
            audio_io.validate_buffer(audio_io.buffer_from_array(np.zeros(100), 0))


class TestWaveform:

    def test_silence_stays_zero(self):
        waveform = audio_io.extract_waveform(np.zeros(SR), SR)
        assert len(waveform) > 0
        assert all(point['value'] == 0.0 for point in waveform)

    def test_normalized_peaks(self):
        samples = np.zeros(10000)
        samples[2500] = -0.5
        samples[7000] = 0.25
        waveform = audio_io.extract_waveform(samples, SR, target_points=10)
        values = [point['value'] for point in waveform]
        assert len(waveform) == 10
        assert max(values) == 1.0
        assert values[7] == pytest.approx(0.5)
        assert waveform[1]['time'] == pytest.approx(1000 / SR)

    def test_short_input(self):
        waveform = audio_io.extract_waveform(np.ones(5), SR, target_points=2000)
        assert len(waveform) == 5

    def test_empty(self):
        assert audio_io.extract_waveform(np.zeros(0), SR) == []
