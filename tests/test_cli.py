"""
Command Line Interface Tests
"""

import argparse
import json

import pytest
from scipy.io import wavfile

import cli
from choreo import synthetic

SR = synthetic.SAMPLE_RATE


@pytest.fixture
def click_wav(tmp_path):
    path = tmp_path / 'input' / 'clicks.wav'
    path.parent.mkdir()
    wavfile.write(path, SR, synthetic.generate_click_track(duration=3.0, sr=SR))
    return path


class TestParseOverride:

    def test_number(self):
        assert cli.parse_override('low_freq_onset_threshold=1.5') == {'low_freq_onset_threshold': 1.5}

    def test_list_becomes_tuple(self):
        assert cli.parse_override('low_band_range=[0, 4]') == {'low_band_range': (0, 4)}

    def test_missing_equals(self):
        with pytest.raises(argparse.ArgumentTypeError):
            cli.parse_override('hop_size')

    def test_merge(self):
        merged = cli.merge_overrides([{'hop_size': 256}, {'hop_size': 441}, {'energy_threshold': 1.0}])
        assert merged == {'hop_size': 441, 'energy_threshold': 1.0}
        assert cli.merge_overrides(None) == {}


class TestMain:

    def test_single_file(self, click_wav, tmp_path):
        output = tmp_path / 'out'
        with pytest.raises(SystemExit) as excinfo:
            cli.main([str(click_wav), '-o', str(output), '--no-plots', '--hop-size', '441'])
        assert excinfo.value.code == 0

        timeline = json.loads((output / 'clicks_timeline.json').read_text())
        assert timeline['params']['hop_size'] == 441
        assert (output / 'clicks_summary.json').exists()
        assert not (output / 'clicks_timeline.png').exists()

    def test_refilter(self, click_wav, tmp_path):
        output = tmp_path / 'out'
        with pytest.raises(SystemExit) as excinfo:
            cli.main([
                str(click_wav), '-o', str(output), '--no-plots',
                '--refilter', 'high_freq_onset_threshold=2.5'
            ])
        assert excinfo.value.code == 0

        refiltered = json.loads((output / 'clicks_refiltered_timeline.json').read_text())
        assert refiltered['params']['high_freq_onset_threshold'] == 2.5

    def test_directory(self, click_wav, tmp_path):
        output = tmp_path / 'out'
        with pytest.raises(SystemExit) as excinfo:
            cli.main([str(click_wav.parent), '-o', str(output), '--no-plots'])
        assert excinfo.value.code == 0
        assert (output / 'clicks' / 'clicks_timeline.json').exists()

    def test_missing_input(self, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            cli.main([str(tmp_path / 'nope.wav'), '-o', str(tmp_path)])
        assert excinfo.value.code == 1

    def test_undecodable_file_fails(self, tmp_path):
        path = tmp_path / 'broken.wav'
        path.write_bytes(b'not audio')
        with pytest.raises(SystemExit) as excinfo:
            cli.main([str(path), '-o', str(tmp_path / 'out'), '--no-plots'])
        assert excinfo.value.code == 1

    def test_invalid_settings(self, click_wav, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            cli.main([str(click_wav), '-o', str(tmp_path), '--set', 'hop_size=4096'])
        assert excinfo.value.code == 2

    def test_input_required_without_demo(self, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            cli.main(['-o', str(tmp_path)])
        assert excinfo.value.code == 2
