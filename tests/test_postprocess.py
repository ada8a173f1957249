"""
Post-Pass Tests

Drop correlation and near-duplicate consolidation.
"""

import numpy as np
import pytest

from choreo.events import (
    BandActivityEvent,
    DynamicChangeEvent,
    EnergyPeakEvent,
    EventCollections,
    TransientEvent,
)
from choreo.postprocess import consolidate_collections, consolidate_events, detect_drops


def peak(time, change, value=5.0):
    return EnergyPeakEvent(time=time, value=value, change=change)


def bass(time, value=1.0):
    return BandActivityEvent(time=time, band='low', value=value, change=1.2)


class TestDetectDrops:

    def test_confidence(self):
        drops = detect_drops([peak(10.0, 3.0)], [bass(10.05, 1.0)])
        assert len(drops) == 1
        assert drops[0].time == 10.0
        assert drops[0].confidence == pytest.approx(1.5)
        assert drops[0].bass_energy == 1.0

    def test_requires_nearby_bass(self):
        assert detect_drops([peak(10.0, 3.0)], [bass(10.2)]) == []
        assert detect_drops([peak(10.0, 3.0)], []) == []

    def test_weaker_drop_within_spacing_rejected(self):
        peaks = [peak(10.0, 3.0), peak(11.0, 2.0), peak(13.0, 2.0)]
        lows = [bass(10.05), bass(11.02), bass(13.01)]
        drops = detect_drops(peaks, lows)
        assert [d.time for d in drops] == [10.0, 13.0]

    def test_strongest_wins_regardless_of_order(self):
        peaks = [peak(10.0, 2.0), peak(11.0, 4.0)]
        lows = [bass(10.01), bass(11.01)]
        drops = detect_drops(peaks, lows)
        assert [d.time for d in drops] == [11.0]

    def test_accepted_drops_sorted_by_time(self):
        peaks = [peak(1.0, 1.0), peak(5.0, 4.0), peak(9.0, 2.0)]
        lows = [bass(1.0), bass(5.0), bass(9.0)]
        drops = detect_drops(peaks, lows)
        assert [d.time for d in drops] == [1.0, 5.0, 9.0]


class TestConsolidateEvents:

    def test_close_events_keep_larger(self):
        events = [
            DynamicChangeEvent(0.0, 1.0, 1.0, 'moderate'),
            DynamicChangeEvent(0.2, 2.0, 2.0, 'significant'),
            DynamicChangeEvent(0.25, 1.5, 1.5, 'moderate'),
            DynamicChangeEvent(0.6, 1.0, 1.0, 'moderate'),
        ]
        kept = consolidate_events(events, 0.3)
        assert [e.time for e in kept] == [0.2, 0.6]

    def test_equal_value_does_not_replace(self):
        events = [
            DynamicChangeEvent(0.0, 1.0, 1.0, 'moderate'),
            DynamicChangeEvent(0.1, 1.0, 1.0, 'moderate'),
        ]
        assert [e.time for e in consolidate_events(events, 0.3)] == [0.0]

    def test_empty(self):
        assert consolidate_events([], 0.3) == []

    def test_kept_events_spaced_beyond_gap(self):
        rng = np.random.default_rng(3)
        times = np.sort(rng.uniform(0, 20, 200))
        events = [
            TransientEvent(float(t), float(t), 'low', float(v), float(v), 1.0)
            for t, v in zip(times, rng.uniform(1, 5, 200))
        ]
        kept = consolidate_events(events, 0.3)
        gaps = np.diff([e.time for e in kept])
        assert np.all(gaps > 0.3)

    def test_collections_consolidated_independently(self):
        collections = EventCollections(
            transients=[
                TransientEvent(1.0, 1.0, 'low', 2.0, 1.6, 1.0),
                TransientEvent(1.001, 1.0, 'mid', 3.0, 2.6, 1.0),
            ],
            dynamic_changes=[DynamicChangeEvent(1.0, 1.5, 1.5, 'moderate')],
        )
        consolidated = consolidate_collections(collections, 0.3)
        assert len(consolidated.transients) == 1
        assert consolidated.transients[0].band == 'mid'
        assert len(consolidated.dynamic_changes) == 1
        assert len(collections.transients) == 2
