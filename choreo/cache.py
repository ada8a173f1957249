"""
Threshold Re-filter Cache

Keeps what a full streaming pass observed so that a change to the onset
thresholds (or onset_min_interval) can rebuild the transient collection in
O(number of raw candidates), without touching the frame adapter.
"""

import logging
from dataclasses import dataclass, field
from itertools import groupby
from typing import Callable, Dict, List, Optional, Sequence

from choreo.audio_io import SampleBuffer
from choreo.detectors import TransientSelector
from choreo.events import EventCollections, RawTransientCandidate, TempoEstimate, TransientEvent
from choreo.settings import AnalysisSettings

logger = logging.getLogger(__name__)


def refilter_transients(
    candidates: Sequence[RawTransientCandidate],
    settings: AnalysisSettings
) -> List[TransientEvent]:
    """
    Rebuild accepted transients from raw candidates.

    Candidates are grouped by frame time (they are stored in frame order)
    and fed through the same TransientSelector the streaming detector uses.

    Parameters:
        candidates: Raw per-band candidates in frame order
        settings: Settings supplying onset thresholds and onset_min_interval

    Returns:
        Accepted transients in time order
    """
    selector = TransientSelector(settings)
    transients: List[TransientEvent] = []

    for frame_time, group in groupby(candidates, key=lambda candidate: candidate.time):
        frame_candidates = list(group)
        ratios: Dict[str, float] = {c.band: c.raw_ratio for c in frame_candidates}
        transients.extend(selector.select(frame_time, ratios, frame_candidates[0].rms_change))

    return transients


@dataclass
class AnalysisCache:
    """
    State retained from the last full streaming pass.

    Attributes:
        buffer: Analyzed sample buffer (for full re-runs)
        settings: Settings of the full pass
        candidates: Every raw transient candidate, in frame order
        events: Pre-consolidation collections of the pass (drops empty)
        end_time: End of observed feature history
        frames_processed: Frames streamed in the pass
        cancelled: True if the pass stopped early
        waveform: Waveform of the buffer
        tempo_hint: External tracker hint the pass was given
        extractor: Feature extractor the pass used (reused by full re-runs)
        degraded: True if the pass was the degraded fallback
    """
    buffer: SampleBuffer
    settings: AnalysisSettings
    candidates: List[RawTransientCandidate]
    events: EventCollections
    end_time: float
    frames_processed: int
    cancelled: bool = False
    waveform: List[Dict[str, float]] = field(default_factory=list)
    tempo_hint: Optional[TempoEstimate] = None
    extractor: Optional[Callable] = None
    degraded: bool = False

    def refilter(self, settings: AnalysisSettings) -> EventCollections:
        """
        Collections with transients re-selected under new settings.

        Non-transient collections are copied unchanged; drops are left empty
        for the post-passes to recompute.

        Parameters:
            settings: New settings (only refilterable fields may differ)

        Returns:
            New EventCollections
        """
        events = self.events.copy()
        events.transients = refilter_transients(self.candidates, settings)
        events.drops = []
        logger.info(
            "Re-filtered %d raw candidates, kept %d transients (was %d)",
            len(self.candidates), len(events.transients), len(self.events.transients)
        )
        return events
