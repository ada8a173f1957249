"""
Threshold Re-filter Tests

Re-filtering cached raw candidates must give the same transients as a full
pass run with the new thresholds, without running feature extraction again.
"""

import numpy as np
import pytest

from choreo import synthetic
from choreo.analyzer import Analyzer
from choreo.audio_io import buffer_from_array
from choreo.cache import refilter_transients
from choreo.events import RawTransientCandidate
from choreo.extraction import SpectralExtractor
from choreo.settings import DEFAULT_SETTINGS

SR = synthetic.SAMPLE_RATE
SETTINGS = DEFAULT_SETTINGS.with_overrides(fft_window_size=1024, hop_size=441)


class CountingExtractor:
    def __init__(self):
        self.calls = 0
        self._inner = SpectralExtractor()

    def __call__(self, window, sample_rate):
        self.calls += 1
        return self._inner(window, sample_rate)


@pytest.fixture(scope='module')
def click_buffer():
    return buffer_from_array(synthetic.generate_click_track(duration=4.0, sr=SR), SR)


def candidates_at(time, low, mid, high, rms=1.0):
    return [
        RawTransientCandidate(time, 'low', low, rms),
        RawTransientCandidate(time, 'mid', mid, rms),
        RawTransientCandidate(time, 'high', high, rms),
    ]


class TestRefilterTransients:

    def test_thresholds_applied(self):
        candidates = candidates_at(1.0, 2.0, 1.0, 2.0) + candidates_at(1.1, 1.3, 1.3, 1.3)
        transients = refilter_transients(candidates, DEFAULT_SETTINGS)
        assert [(t.time, t.band) for t in transients] == [
            (1.0, 'low'), (pytest.approx(1.001), 'high'),
            (1.1, 'low'), (pytest.approx(1.101), 'mid'),
        ]

    def test_raised_threshold(self):
        candidates = candidates_at(1.0, 2.0, 1.0, 2.0)
        settings = DEFAULT_SETTINGS.with_overrides(low_freq_onset_threshold=2.5)
        transients = refilter_transients(candidates, settings)
        assert [t.band for t in transients] == ['high']
        assert transients[0].time == 1.0

    def test_min_interval(self):
        candidates = candidates_at(1.0, 2.0, 1.0, 1.0) + candidates_at(1.2, 2.0, 1.0, 1.0)
        settings = DEFAULT_SETTINGS.with_overrides(onset_min_interval=0.25)
        assert len(refilter_transients(candidates, settings)) == 1

    def test_empty(self):
        assert refilter_transients([], DEFAULT_SETTINGS) == []


class TestAnalyzerRefilter:

    def test_matches_full_pass(self, click_buffer):
        new_thresholds = dict(low_freq_onset_threshold=2.0, mid_freq_onset_threshold=1.5,
                              high_freq_onset_threshold=2.5)

        analyzer = Analyzer(settings=SETTINGS)
        analyzer.analyze(click_buffer)
        refiltered = analyzer.reanalyze_with_settings(**new_thresholds)

        full = Analyzer(settings=SETTINGS.with_overrides(**new_thresholds)).analyze(click_buffer)

        assert refiltered.events.transients == full.events.transients
        assert refiltered.timeline == full.timeline
        assert refiltered.tempo == full.tempo

    def test_no_extraction_on_threshold_change(self, click_buffer):
        extractor = CountingExtractor()
        analyzer = Analyzer(settings=SETTINGS, extractor=extractor)
        analyzer.analyze(click_buffer)
        calls_after_full_pass = extractor.calls

        analyzer.reanalyze_with_settings(high_freq_onset_threshold=3.0)
        assert extractor.calls == calls_after_full_pass

    def test_other_change_runs_full_pass(self, click_buffer):
        extractor = CountingExtractor()
        analyzer = Analyzer(settings=SETTINGS, extractor=extractor)
        analyzer.analyze(click_buffer)
        calls_after_full_pass = extractor.calls

        result = analyzer.reanalyze_with_settings(hop_size=882, low_freq_onset_threshold=1.5)
        assert extractor.calls > calls_after_full_pass
        assert result.frames_processed == int(np.ceil(click_buffer.num_samples / 882))

    def test_idempotent(self, click_buffer):
        analyzer = Analyzer(settings=SETTINGS)
        analyzer.analyze(click_buffer)
        first = analyzer.reanalyze_with_settings(low_freq_onset_threshold=1.8)
        second = analyzer.reanalyze_with_settings(low_freq_onset_threshold=1.8)
        assert first.events.transients == second.events.transients
        assert first.timeline == second.timeline

    def test_raised_thresholds_keep_subset(self, click_buffer):
        analyzer = Analyzer(settings=SETTINGS)
        base = analyzer.analyze(click_buffer)
        raised = analyzer.reanalyze_with_settings(
            low_freq_onset_threshold=3.0, mid_freq_onset_threshold=3.0, high_freq_onset_threshold=3.0
        )
        assert len(base.events.transients) > 0
        assert len(raised.events.transients) <= len(base.events.transients)

    def test_overrides_accumulate(self, click_buffer):
        analyzer = Analyzer(settings=SETTINGS)
        analyzer.analyze(click_buffer)
        analyzer.reanalyze_with_settings(low_freq_onset_threshold=1.8)
        result = analyzer.reanalyze_with_settings(mid_freq_onset_threshold=1.9)

        full = Analyzer(settings=SETTINGS.with_overrides(
            low_freq_onset_threshold=1.8, mid_freq_onset_threshold=1.9
        )).analyze(click_buffer)
        assert result.events.transients == full.events.transients
