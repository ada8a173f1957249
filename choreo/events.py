"""
Event Records Module

One frozen record type per event kind, plus the per-pass collections,
tempo estimate and beat grid entries. Every event exposes `time`, a `kind`
tag and a `primary_value` used when consolidating near-duplicates.
"""

from dataclasses import asdict, dataclass, field, fields
from typing import ClassVar, Dict, Iterator, List, Optional, Tuple


# =============================================================================
# EVENT KINDS
# =============================================================================

@dataclass(frozen=True)
class TransientEvent:
    """
    Band onset.

    Attributes:
        time: Frame time plus 0.001s per earlier same-frame transient
        frame_time: Unshifted frame time (groups simultaneous transients)
        band: 'low', 'mid' or 'high'
        value: Band change ratio
        intensity: Change ratio divided by the band threshold (> 1)
        rms_change: RMS change ratio at the same frame
    """
    kind: ClassVar[str] = 'transient'

    time: float
    frame_time: float
    band: str
    value: float
    intensity: float
    rms_change: float

    @property
    def primary_value(self) -> float:
        return self.value


@dataclass(frozen=True)
class DynamicChangeEvent:
    kind: ClassVar[str] = 'dynamic_change'

    time: float
    value: float
    intensity: float
    category: str  # 'dramatic', 'significant' or 'moderate'

    @property
    def primary_value(self) -> float:
        return self.value


@dataclass(frozen=True)
class BandActivityEvent:
    """Band activity: `value` is the current band energy, `change` its ratio."""
    kind: ClassVar[str] = 'band_activity'

    time: float
    band: str
    value: float
    change: float

    @property
    def primary_value(self) -> float:
        return self.value


@dataclass(frozen=True)
class TimbreChangeEvent:
    kind: ClassVar[str] = 'timbre_change'

    time: float
    flatness: float
    intensity: float

    @property
    def primary_value(self) -> float:
        return self.intensity


@dataclass(frozen=True)
class EnergyPeakEvent:
    kind: ClassVar[str] = 'energy_peak'

    time: float
    value: float
    change: float

    @property
    def primary_value(self) -> float:
        return self.value


@dataclass(frozen=True)
class FluxSpikeEvent:
    """Spectral flux spike; the series tempo estimation calls beats."""
    kind: ClassVar[str] = 'flux_spike'

    time: float
    value: float
    change: float

    @property
    def primary_value(self) -> float:
        return self.value


@dataclass(frozen=True)
class SpectrumShiftEvent:
    """Abrupt frame-to-frame flatness jump."""
    kind: ClassVar[str] = 'spectrum_shift'

    time: float
    flatness: float
    delta: float

    @property
    def primary_value(self) -> float:
        return self.delta


@dataclass(frozen=True)
class DropEvent:
    kind: ClassVar[str] = 'drop'

    time: float
    energy: float
    bass_energy: float
    confidence: float

    @property
    def primary_value(self) -> float:
        return self.confidence


def event_to_dict(event) -> Dict:
    """Serialize an event record with its kind tag."""
    data = asdict(event)
    data['kind'] = event.kind
    return data


# =============================================================================
# TEMPO AND BEAT GRID
# =============================================================================

@dataclass(frozen=True)
class TempoEstimate:
    """
    Attributes:
        bpm: Beats per minute
        beat_interval: Seconds per beat
        confidence: Share of intervals supporting the estimate, in [0, 1]
        source: 'tracker', 'beats' or 'transients'
    """
    bpm: float
    beat_interval: float
    confidence: float
    source: str

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class BeatGridEntry:
    time: float
    beat: int
    bar: int
    intensity: float

    @property
    def is_downbeat(self) -> bool:
        return self.beat == 0

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class RawTransientCandidate:
    """
    Threshold-independent band ratio observed at one evaluated frame.

    Attributes:
        time: Frame time
        band: 'low', 'mid' or 'high'
        raw_ratio: Band change ratio before thresholding
        rms_change: RMS change ratio at the same frame
    """
    time: float
    band: str
    raw_ratio: float
    rms_change: float


# =============================================================================
# COLLECTIONS
# =============================================================================

@dataclass
class EventCollections:
    """Event lists of one analysis pass, one per kind."""
    transients: List[TransientEvent] = field(default_factory=list)
    dynamic_changes: List[DynamicChangeEvent] = field(default_factory=list)
    low_frequency_events: List[BandActivityEvent] = field(default_factory=list)
    mid_range_events: List[BandActivityEvent] = field(default_factory=list)
    high_frequency_events: List[BandActivityEvent] = field(default_factory=list)
    timbre_changes: List[TimbreChangeEvent] = field(default_factory=list)
    energy_peaks: List[EnergyPeakEvent] = field(default_factory=list)
    beats: List[FluxSpikeEvent] = field(default_factory=list)
    spectrum_events: List[SpectrumShiftEvent] = field(default_factory=list)
    drops: List[DropEvent] = field(default_factory=list)

    @classmethod
    def collection_names(cls) -> Tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def items(self) -> Iterator[Tuple[str, List]]:
        for name in self.collection_names():
            yield name, getattr(self, name)

    def copy(self) -> 'EventCollections':
        """Shallow copy with new lists (records are immutable)."""
        return EventCollections(**{name: list(events) for name, events in self.items()})

    def sort_by_time(self) -> None:
        """Stable in-place sort of every collection by time."""
        for _, events in self.items():
            events.sort(key=lambda event: event.time)

    def counts(self) -> Dict[str, int]:
        return {name: len(events) for name, events in self.items()}

    def total(self) -> int:
        return sum(len(events) for _, events in self.items())


@dataclass(frozen=True)
class AnalysisProgress:
    """
    Progress report yielded at each cooperative suspension point.

    Attributes:
        frames_processed: Frames handled so far
        total_frames: Frames in the full pass
        time: Time of the last processed frame (seconds)
    """
    frames_processed: int
    total_frames: int
    time: float

    @property
    def fraction(self) -> float:
        if self.total_frames <= 0:
            return 1.0
        return min(1.0, self.frames_processed / self.total_frames)


@dataclass
class AnalysisResult:
    """
    Outcome of one analysis or re-analysis.

    Attributes:
        events: Consolidated event collections
        tempo: Tempo estimate (None if no reliable tempo)
        beat_grid: Synthesized beat grid (empty without tempo)
        timeline: Formatted, time-ordered animation timeline
        duration: End of observed feature history (seconds)
        waveform: Down-sampled peak amplitudes [{'time', 'value'}]
        frames_processed: Frames streamed in the pass that produced the events
        cancelled: True if the streaming pass stopped early
        degraded: True if produced by the fallback pass
    """
    events: EventCollections
    tempo: Optional[TempoEstimate]
    beat_grid: List[BeatGridEntry]
    timeline: List[Dict]
    duration: float
    waveform: List[Dict[str, float]]
    frames_processed: int
    cancelled: bool = False
    degraded: bool = False
