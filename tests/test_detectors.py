"""
Event Detector Tests

Drive the detector with hand-built frames whose moving averages are easy to
compute: four steady frames of 1.0, then one frame under test, so the
trend window (5, current frame included) averages to (4 + x) / 5.
"""

import pytest

import config
from choreo.detectors import EventDetector, TransientSelector, can_add_event, change_ratio
from choreo.events import TransientEvent
from choreo.frames import FrameFeatures
from choreo.history import FeatureHistory
from choreo.settings import DEFAULT_SETTINGS

FRAME_SEC = 0.1


def make_frame(index, **overrides):
    values = dict(
        index=index,
        time=index * FRAME_SEC,
        energy=1.0,
        loudness_total=1.0,
        loudness_specific=None,
        rms=1.0,
        spectral_flatness=0.5,
        spectral_flux=1.0,
        low_band_energy=1.0,
        mid_band_energy=1.0,
        high_band_energy=1.0,
    )
    values.update(overrides)
    return FrameFeatures(**values)


def make_detector(settings=DEFAULT_SETTINGS):
    return EventDetector(settings, FeatureHistory(settings.history_length()))


def feed_steady(detector, count=4, start=0):
    for i in range(start, start + count):
        detector.process(make_frame(i))


class TestHelpers:

    def test_change_ratio_floors_average(self):
        assert change_ratio(5.0, 0.0) == pytest.approx(500.0)
        assert change_ratio(5.0, None) == pytest.approx(500.0)
        assert change_ratio(1.0, 0.5) == pytest.approx(2.0)

    def test_can_add_event_strictly_after_gap(self):
        events = [TransientEvent(1.0, 1.0, 'low', 2.0, 1.5, 1.0)]
        assert can_add_event([], 0.0, 0.3)
        assert not can_add_event(events, 1.3, 0.5)
        assert can_add_event(events, 1.6, 0.5)


class TestTransientSelector:

    def test_only_bands_above_threshold(self):
        selector = TransientSelector(DEFAULT_SETTINGS)
        accepted = selector.select(1.0, {'low': 2.0, 'mid': 0.5, 'high': 2.0}, 1.0)
        assert [t.band for t in accepted] == ['low', 'high']
        assert accepted[0].intensity == pytest.approx(2.0 / 1.212)

    def test_same_frame_offsets(self):
        selector = TransientSelector(DEFAULT_SETTINGS)
        accepted = selector.select(1.0, {'low': 5.0, 'mid': 5.0, 'high': 5.0}, 1.0)
        assert [t.time for t in accepted] == pytest.approx([1.0, 1.001, 1.002])
        assert all(t.frame_time == 1.0 for t in accepted)

    def test_offset_counts_accepted_only(self):
        selector = TransientSelector(DEFAULT_SETTINGS)
        accepted = selector.select(1.0, {'low': 0.5, 'mid': 5.0, 'high': 5.0}, 1.0)
        assert [t.time for t in accepted] == pytest.approx([1.0, 1.001])

    def test_ratio_equal_to_threshold_rejected(self):
        selector = TransientSelector(DEFAULT_SETTINGS)
        assert selector.select(1.0, {'low': 1.212}, 1.0) == []

    def test_min_interval_gates_per_band(self):
        settings = DEFAULT_SETTINGS.with_overrides(onset_min_interval=0.5)
        selector = TransientSelector(settings)
        assert len(selector.select(1.0, {'low': 5.0}, 1.0)) == 1
        assert selector.select(1.5, {'low': 5.0}, 1.0) == []
        assert len(selector.select(1.5, {'mid': 5.0}, 1.0)) == 1
        assert len(selector.select(1.6, {'low': 5.0}, 1.0)) == 1


class TestEventDetector:

    def test_no_detection_before_window_full(self):
        detector = make_detector()
        feed_steady(detector, count=4)
        assert detector.frames_seen == 4
        assert detector.frames_evaluated == 0
        assert detector.candidates == []

    def test_three_candidates_per_evaluated_frame(self):
        detector = make_detector()
        feed_steady(detector, count=7)
        assert detector.frames_evaluated == 3
        assert len(detector.candidates) == 9
        assert [c.band for c in detector.candidates[:3]] == ['low', 'mid', 'high']

    def test_low_band_transient(self):
        detector = make_detector()
        feed_steady(detector)
        detector.process(make_frame(4, low_band_energy=3.0))

        transients = detector.events.transients
        assert len(transients) == 1
        assert transients[0].band == 'low'
        # Average includes the current frame: (4 * 1 + 3) / 5
        assert transients[0].value == pytest.approx(3.0 / 1.4)
        assert transients[0].time == pytest.approx(0.4)

    def test_simultaneous_transients(self):
        detector = make_detector()
        feed_steady(detector)
        detector.process(make_frame(4, low_band_energy=3.0, mid_band_energy=3.0, high_band_energy=3.0))
        times = [t.time for t in detector.events.transients]
        assert times == pytest.approx([0.4, 0.401, 0.402])

    def test_onset_min_interval(self):
        def run(settings):
            detector = make_detector(settings)
            feed_steady(detector)
            detector.process(make_frame(4, low_band_energy=3.0))
            detector.process(make_frame(5))
            detector.process(make_frame(6, low_band_energy=3.0))
            return detector.events.transients

        assert len(run(DEFAULT_SETTINGS)) == 2
        assert len(run(DEFAULT_SETTINGS.with_overrides(onset_min_interval=0.5))) == 1

    def test_dynamic_change_category(self):
        detector = make_detector()
        feed_steady(detector)
        detector.process(make_frame(4, rms=3.0))
        changes = detector.events.dynamic_changes
        assert len(changes) == 1
        # 3.0 / 1.4 = 2.14: above significant (1.8), below dramatic (2.5)
        assert changes[0].category == 'significant'

    def test_dramatic_change(self):
        detector = make_detector()
        feed_steady(detector)
        detector.process(make_frame(4, rms=10.0))
        assert detector.events.dynamic_changes[0].category == 'dramatic'

    def test_timbre_and_spectrum_shift(self):
        detector = make_detector()
        feed_steady(detector)
        detector.process(make_frame(4, spectral_flatness=0.9))

        assert len(detector.events.spectrum_events) == 1
        assert detector.events.spectrum_events[0].delta == pytest.approx(0.4)
        assert len(detector.events.timbre_changes) == 1
        assert detector.events.timbre_changes[0].intensity == pytest.approx(0.32 / 0.58)

    def test_spectrum_shift_compares_previous_frame(self):
        detector = make_detector()
        feed_steady(detector)
        detector.process(make_frame(4, spectral_flatness=0.65))
        detector.process(make_frame(5, spectral_flatness=0.8))
        # 0.15 jumps each frame: below the 0.2 shift threshold
        assert detector.events.spectrum_events == []

    def test_flux_spike_beat(self):
        detector = make_detector()
        feed_steady(detector)
        detector.process(make_frame(4, spectral_flux=20.0))
        beats = detector.events.beats
        assert len(beats) == 1
        assert beats[0].change == pytest.approx(20.0 / 4.8)

    def test_same_kind_events_gated(self):
        detector = make_detector()
        feed_steady(detector)
        detector.process(make_frame(4, spectral_flux=20.0))
        detector.process(make_frame(5, spectral_flux=200.0))
        # 0.1s apart, min_time_between_events is 0.3s
        assert len(detector.events.beats) == 1

    def test_bass_uses_absolute_level(self):
        detector = make_detector()
        for i in range(6):
            detector.process(make_frame(i, low_band_energy=0.5))
        assert detector.events.low_frequency_events == []

        detector = make_detector()
        for i in range(6):
            detector.process(make_frame(i, low_band_energy=config.LOW_FREQUENCY_THRESHOLD + 0.1))
        assert len(detector.events.low_frequency_events) == 1

    def test_silence_produces_nothing(self):
        detector = make_detector()
        zero = dict(energy=0.0, loudness_total=0.0, rms=0.0, spectral_flatness=0.0,
                    spectral_flux=config.FLUX_FLOOR, low_band_energy=0.0,
                    mid_band_energy=0.0, high_band_energy=0.0)
        for i in range(20):
            detector.process(make_frame(i, **zero))
        assert detector.events.total() == 0
        assert len(detector.candidates) == 16 * 3
