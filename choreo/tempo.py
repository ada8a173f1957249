"""
Tempo / Beat Grid Module

Histogram-mode tempo estimation from event timestamps and synthesis of an
evenly spaced 4/4 beat grid.

Estimation order of preference:
1. A pre-existing beat grid (kept as is)
2. An external tracker hint with confidence > TRACKER_MIN_CONFIDENCE
3. Flux spike ("beat") timestamps, if at least MIN_TEMPO_EVENTS
4. Transient timestamps, if at least MIN_TEMPO_EVENTS
5. No tempo, empty grid
"""

import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

import config
from choreo.errors import UnreliableTempo
from choreo.events import BeatGridEntry, TempoEstimate

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round to nearest integer, halves away from zero for positive values."""
    return int(math.floor(value + 0.5))


def estimate_tempo_from_timestamps(
    timestamps: Sequence[float],
    source: str,
    min_events: int = config.MIN_TEMPO_EVENTS,
    bin_sec: float = config.TEMPO_BIN_SEC
) -> Optional[TempoEstimate]:
    """
    Estimate tempo from the modal inter-event interval.

    Intervals between consecutive timestamps are binned to bin_sec; the
    most populated bin wins (ties go to the bin reached first).

    Parameters:
        timestamps: Sorted event times in seconds
        source: Label stored on the estimate
        min_events: Minimum number of timestamps
        bin_sec: Interval bin width in seconds

    Returns:
        TempoEstimate, or None if there are too few timestamps

    Raises:
        UnreliableTempo: If the modal BPM is outside [TEMPO_MIN_BPM, TEMPO_MAX_BPM]
    """
    if len(timestamps) < min_events:
        return None

    intervals = [timestamps[i] - timestamps[i - 1] for i in range(1, len(timestamps))]

    # Intervals are scaled onto bins (0.505 s -> 51), not divided
    bins_per_sec = 1.0 / bin_sec
    counts: Dict[int, int] = {}
    for interval in intervals:
        key = round_half_up(interval * bins_per_sec)
        counts[key] = counts.get(key, 0) + 1

    modal_key = 0
    max_count = 0
    for key, count in counts.items():
        if count > max_count:
            modal_key = key
            max_count = count

    beat_interval = round(modal_key * bin_sec, 6)
    if beat_interval <= 0:
        raise UnreliableTempo(0)

    bpm = round_half_up(60.0 / beat_interval)
    if not (config.TEMPO_MIN_BPM <= bpm <= config.TEMPO_MAX_BPM):
        raise UnreliableTempo(bpm)

    return TempoEstimate(
        bpm=bpm,
        beat_interval=beat_interval,
        confidence=max_count / len(intervals),
        source=source
    )


def build_beat_grid(
    beat_interval: float,
    end_time: float,
    beats_per_bar: int = config.BEATS_PER_BAR
) -> List[BeatGridEntry]:
    """
    Evenly spaced beats from 0 while t < end_time.

    Beat k sits at k * beat_interval, beat index k % beats_per_bar,
    bar k // beats_per_bar; downbeats get DOWNBEAT_INTENSITY.

    Parameters:
        beat_interval: Seconds per beat
        end_time: End of observed history (exclusive)
        beats_per_bar: Beats in one bar

    Returns:
        List of BeatGridEntry
    """
    if beat_interval <= 0:
        raise ValueError(f"beat_interval must be positive, got {beat_interval}")

    grid = []
    k = 0
    while k * beat_interval < end_time:
        beat = k % beats_per_bar
        grid.append(BeatGridEntry(
            time=k * beat_interval,
            beat=beat,
            bar=k // beats_per_bar,
            intensity=config.DOWNBEAT_INTENSITY if beat == 0 else config.BEAT_INTENSITY
        ))
        k += 1
    return grid


def _try_estimate(timestamps: Sequence[float], source: str) -> Optional[TempoEstimate]:
    try:
        return estimate_tempo_from_timestamps(timestamps, source)
    except UnreliableTempo as exc:
        logger.warning("%s - ignoring %s estimate", exc, source)
        return None


def estimate_tempo(
    beat_times: Sequence[float],
    transient_times: Sequence[float],
    end_time: float,
    tracker_hint: Optional[TempoEstimate] = None,
    existing_grid: Optional[List[BeatGridEntry]] = None,
    existing_tempo: Optional[TempoEstimate] = None
) -> Tuple[Optional[TempoEstimate], List[BeatGridEntry]]:
    """
    Pick a tempo by order of preference and synthesize its beat grid.

    Parameters:
        beat_times: Sorted flux spike times
        transient_times: Sorted transient times
        end_time: End of observed history (grid is built up to it)
        tracker_hint: Optional estimate from an external beat tracker
        existing_grid: Optional beat grid to keep as is
        existing_tempo: Tempo belonging to existing_grid

    Returns:
        Tuple of (tempo or None, beat grid)
    """
    if existing_grid:
        logger.info("Using existing beat grid with %d beats", len(existing_grid))
        return existing_tempo, list(existing_grid)

    tempo = None
    if (tracker_hint is not None and tracker_hint.bpm > 0
            and tracker_hint.confidence > config.TRACKER_MIN_CONFIDENCE):
        tempo = TempoEstimate(
            bpm=tracker_hint.bpm,
            beat_interval=60.0 / tracker_hint.bpm,
            confidence=tracker_hint.confidence,
            source='tracker'
        )

    if tempo is None:
        tempo = _try_estimate(beat_times, 'beats')

    if tempo is None:
        tempo = _try_estimate(transient_times, 'transients')

    if tempo is None:
        logger.warning("Could not detect reliable tempo for beat grid creation")
        return None, []

    grid = build_beat_grid(tempo.beat_interval, end_time)
    logger.info(
        "Tempo %s BPM from %s (confidence %.2f), %d grid beats",
        tempo.bpm, tempo.source, tempo.confidence, len(grid)
    )
    return tempo, grid
