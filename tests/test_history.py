"""
Feature History Tests
"""

import pytest

from choreo.history import TRACKED_FEATURES, FeatureHistory


class TestFeatureHistory:

    def test_moving_average_of_newest_values(self):
        history = FeatureHistory(10)
        for i, value in enumerate([1.0, 2.0, 3.0, 4.0]):
            history.record('energy', value, i * 0.1)
        assert history.moving_average('energy', 2) == pytest.approx(3.5)
        assert history.moving_average('energy', 4) == pytest.approx(2.5)

    def test_moving_average_insufficient_data(self):
        history = FeatureHistory(10)
        history.record('energy', 1.0, 0.0)
        assert history.moving_average('energy', 2) is None

    def test_oldest_entry_evicted(self):
        history = FeatureHistory(3)
        for i, value in enumerate([1.0, 2.0, 3.0, 4.0]):
            history.record('rms', value, float(i))
        assert history.values('rms') == [2.0, 3.0, 4.0]
        assert history.moving_average('rms', 4) is None

    def test_latest_with_offset(self):
        history = FeatureHistory(5)
        for i, value in enumerate([0.1, 0.2, 0.3]):
            history.record('spectral_flatness', value, float(i))
        assert history.latest('spectral_flatness') == 0.3
        assert history.latest('spectral_flatness', offset=1) == 0.2
        assert history.latest('spectral_flatness', offset=3) is None

    def test_is_ready_needs_every_feature(self):
        history = FeatureHistory(5)
        history.record('energy', 1.0, 0.0)
        assert not history.is_ready(1)
        for name in TRACKED_FEATURES:
            if name != 'energy':
                history.record(name, 1.0, 0.0)
        assert history.is_ready(1)
        assert len(history) == 1

    def test_last_time(self):
        history = FeatureHistory(5)
        assert history.last_time() == 0.0
        history.record('energy', 1.0, 0.5)
        history.record('energy', 1.0, 0.75)
        assert history.last_time() == 0.75

    def test_untracked_feature_rejected(self):
        history = FeatureHistory(5)
        with pytest.raises(KeyError):
            history.record('tempo', 1.0, 0.0)

    def test_invalid_length(self):
        with pytest.raises(ValueError):
            FeatureHistory(0)

    def test_clear(self):
        history = FeatureHistory(5)
        history.record('energy', 1.0, 0.0)
        history.clear()
        assert history.values('energy') == []
