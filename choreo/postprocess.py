"""
Post-Pass Module

End-of-stream passes over the collected events:
- detect_drops: correlate energy peaks with bass events
- consolidate_events: collapse same-kind events that are too close in time
"""

import logging
from typing import List, Sequence

import config
from choreo.events import BandActivityEvent, DropEvent, EnergyPeakEvent, EventCollections

logger = logging.getLogger(__name__)


def detect_drops(
    energy_peaks: Sequence[EnergyPeakEvent],
    low_frequency_events: Sequence[BandActivityEvent],
    bass_window_sec: float = config.DROP_BASS_WINDOW_SEC,
    min_spacing_sec: float = config.DROP_MIN_SPACING_SEC
) -> List[DropEvent]:
    """
    Find drops: energy peaks with a bass event close by.

    Each energy peak is paired with the first low-frequency event within
    bass_window_sec (strictly). Candidates are then accepted greedily by
    descending confidence, skipping any within min_spacing_sec of an
    accepted drop.

    Parameters:
        energy_peaks: Energy peak events
        low_frequency_events: Low band activity events
        bass_window_sec: Max |dt| between peak and bass event
        min_spacing_sec: Minimum distance between accepted drops

    Returns:
        Accepted drops sorted by time, confidence = change * (bass / 2)
    """
    candidates: List[DropEvent] = []

    for peak in energy_peaks:
        bass = next(
            (event for event in low_frequency_events if abs(event.time - peak.time) < bass_window_sec),
            None
        )
        if bass is None:
            continue
        candidates.append(DropEvent(
            time=peak.time,
            energy=peak.value,
            bass_energy=bass.value,
            confidence=peak.change * (bass.value / 2)
        ))

    # Stable: equal confidences keep peak order
    candidates.sort(key=lambda drop: drop.confidence, reverse=True)

    accepted: List[DropEvent] = []
    for drop in candidates:
        if any(abs(existing.time - drop.time) < min_spacing_sec for existing in accepted):
            continue
        accepted.append(drop)

    logger.debug("Drops: %d candidates, %d accepted", len(candidates), len(accepted))
    return sorted(accepted, key=lambda drop: drop.time)


def consolidate_events(events: Sequence, min_gap: float) -> List:
    """
    Collapse near-duplicate events of one kind.

    Walks events in time order keeping a running last accepted event. An
    event more than min_gap after it is appended; otherwise it replaces
    the last accepted one only if its primary value is strictly larger.

    Parameters:
        events: Events of a single kind
        min_gap: Minimum time between kept events (seconds)

    Returns:
        New list of consolidated events
    """
    ordered = sorted(events, key=lambda event: event.time)
    if not ordered:
        return []

    filtered = [ordered[0]]
    for current in ordered[1:]:
        last = filtered[-1]
        if current.time - last.time > min_gap:
            filtered.append(current)
        elif current.primary_value > last.primary_value:
            filtered[-1] = current

    return filtered


def consolidate_collections(collections: EventCollections, min_gap: float) -> EventCollections:
    """
    Consolidate every collection independently.

    Parameters:
        collections: Raw per-kind event lists
        min_gap: Minimum time between kept events (seconds)

    Returns:
        New EventCollections
    """
    consolidated = EventCollections(**{
        name: consolidate_events(events, min_gap) for name, events in collections.items()
    })
    logger.debug("Consolidated %d events to %d", collections.total(), consolidated.total())
    return consolidated
