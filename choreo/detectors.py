"""
Event Detection Module

Per-frame detection rules comparing the current frame against its own
moving averages. Each kind de-duplicates against the last accepted event
of that kind (transients: of that band) and never against a global clock.
"""

import logging
from typing import Dict, List, Optional, Sequence

import config
from choreo.events import (
    BandActivityEvent,
    DynamicChangeEvent,
    EnergyPeakEvent,
    EventCollections,
    FluxSpikeEvent,
    RawTransientCandidate,
    SpectrumShiftEvent,
    TimbreChangeEvent,
    TransientEvent,
)
from choreo.frames import FrameFeatures
from choreo.history import FeatureHistory
from choreo.settings import BANDS, AnalysisSettings

logger = logging.getLogger(__name__)


def change_ratio(current: float, average: Optional[float]) -> float:
    """
    Current value relative to its moving average.

    Parameters:
        current: Current feature value
        average: Moving average (None treated like zero)

    Returns:
        current / max(average, AVERAGE_EPSILON)
    """
    if average is None:
        average = 0.0
    return current / max(average, config.AVERAGE_EPSILON)


def can_add_event(events: Sequence, time: float, min_interval: float) -> bool:
    """True if `time` is strictly more than min_interval after the last event."""
    if not events:
        return True
    return (time - events[-1].time) > min_interval


# =============================================================================
# TRANSIENT SELECTION
# =============================================================================

class TransientSelector:
    """
    Threshold and per-band gating for transient candidates.

    The streaming detector and the re-filter cache both feed frames through
    this class, which is what makes cached and full-pass results identical.
    """

    def __init__(self, settings: AnalysisSettings):
        self.thresholds = settings.onset_thresholds()
        self.min_interval = settings.onset_min_interval
        self._last_frame_time: Dict[str, float] = {}

    def select(
        self,
        frame_time: float,
        ratios: Dict[str, float],
        rms_change: float
    ) -> List[TransientEvent]:
        """
        Transients accepted at one frame.

        Parameters:
            frame_time: Frame time in seconds
            ratios: Band change ratio keyed by band name
            rms_change: RMS change ratio at this frame

        Returns:
            Accepted transients in low, mid, high order; the n-th accepted
            one is shifted by n * SIMULTANEOUS_TRANSIENT_OFFSET_SEC
        """
        accepted: List[TransientEvent] = []

        for band in BANDS:
            if band not in ratios:
                continue
            ratio = ratios[band]
            factor = ratio / self.thresholds[band]
            if factor <= 1:
                continue

            last = self._last_frame_time.get(band)
            if last is not None and (frame_time - last) <= self.min_interval:
                continue

            accepted.append(TransientEvent(
                time=frame_time + len(accepted) * config.SIMULTANEOUS_TRANSIENT_OFFSET_SEC,
                frame_time=frame_time,
                band=band,
                value=ratio,
                intensity=factor,
                rms_change=rms_change
            ))
            self._last_frame_time[band] = frame_time

        return accepted


# =============================================================================
# FRAME DETECTOR
# =============================================================================

class EventDetector:
    """
    Runs every detection rule once per frame.

    Owns the event collections and raw transient candidates of one pass;
    the feature history is supplied by the caller.
    """

    def __init__(self, settings: AnalysisSettings, history: FeatureHistory):
        self.settings = settings
        self.history = history
        self.events = EventCollections()
        self.candidates: List[RawTransientCandidate] = []
        self.frames_seen = 0
        self.frames_evaluated = 0
        self._selector = TransientSelector(settings)

    def process(self, frame: FrameFeatures) -> None:
        """
        Record a frame into history, then run the detectors once history
        holds a full trend window.

        Parameters:
            frame: Features of the next frame (strictly increasing time)
        """
        self.history.record_frame(frame)
        self.frames_seen += 1

        window = self.settings.analysis_window_size
        if not self.history.is_ready(window):
            return
        self.frames_evaluated += 1

        avg = {
            name: self.history.moving_average(name, window)
            for name in ('energy', 'spectral_flux', 'rms', 'spectral_flatness',
                         'low_band_energy', 'mid_band_energy', 'high_band_energy')
        }

        energy_change = change_ratio(frame.energy, avg['energy'])
        flux_change = change_ratio(frame.spectral_flux, avg['spectral_flux'])
        rms_change = change_ratio(frame.rms, avg['rms'])
        band_changes = {
            'low': change_ratio(frame.low_band_energy, avg['low_band_energy']),
            'mid': change_ratio(frame.mid_band_energy, avg['mid_band_energy']),
            'high': change_ratio(frame.high_band_energy, avg['high_band_energy']),
        }
        flatness_change = abs(frame.spectral_flatness - avg['spectral_flatness']) / max(
            avg['spectral_flatness'], config.AVERAGE_EPSILON
        )

        self._detect_transients(frame.time, band_changes, rms_change)
        self._detect_dynamic_change(frame.time, rms_change)
        self._detect_band_activity(frame, band_changes)
        self._detect_timbre_change(frame, flatness_change)
        self._detect_legacy(frame, energy_change, flux_change)
        self._detect_spectrum_shift(frame)

    def _detect_transients(self, time: float, band_changes: Dict[str, float], rms_change: float) -> None:
        for band in BANDS:
            self.candidates.append(RawTransientCandidate(
                time=time,
                band=band,
                raw_ratio=band_changes[band],
                rms_change=rms_change
            ))

        accepted = self._selector.select(time, band_changes, rms_change)
        for transient in accepted:
            logger.debug(
                "%s band transient at %.3fs (ratio %.2f, factor %.2f)",
                transient.band, transient.time, transient.value, transient.intensity
            )
        self.events.transients.extend(accepted)

    def _detect_dynamic_change(self, time: float, rms_change: float) -> None:
        s = self.settings
        if rms_change > s.dramatic_change_threshold:
            category = 'dramatic'
        elif rms_change > s.significant_change_threshold:
            category = 'significant'
        elif rms_change > s.moderate_change_threshold:
            category = 'moderate'
        else:
            return

        if can_add_event(self.events.dynamic_changes, time, s.min_time_between_events):
            self.events.dynamic_changes.append(DynamicChangeEvent(
                time=time,
                value=rms_change,
                intensity=rms_change,
                category=category
            ))

    def _detect_band_activity(self, frame: FrameFeatures, band_changes: Dict[str, float]) -> None:
        s = self.settings
        gap = s.min_time_between_events

        # Low band fires on the absolute level, mid/high on the ratio
        if (frame.low_band_energy > s.low_frequency_threshold
                and can_add_event(self.events.low_frequency_events, frame.time, gap)):
            self.events.low_frequency_events.append(BandActivityEvent(
                time=frame.time, band='low', value=frame.low_band_energy, change=band_changes['low']
            ))

        if (band_changes['mid'] > s.moderate_change_threshold
                and can_add_event(self.events.mid_range_events, frame.time, gap)):
            self.events.mid_range_events.append(BandActivityEvent(
                time=frame.time, band='mid', value=frame.mid_band_energy, change=band_changes['mid']
            ))

        if (band_changes['high'] > s.moderate_change_threshold
                and can_add_event(self.events.high_frequency_events, frame.time, gap)):
            self.events.high_frequency_events.append(BandActivityEvent(
                time=frame.time, band='high', value=frame.high_band_energy, change=band_changes['high']
            ))

    def _detect_timbre_change(self, frame: FrameFeatures, flatness_change: float) -> None:
        s = self.settings
        if (flatness_change > s.timbre_change_threshold
                and can_add_event(self.events.timbre_changes, frame.time, s.min_time_between_events)):
            self.events.timbre_changes.append(TimbreChangeEvent(
                time=frame.time,
                flatness=frame.spectral_flatness,
                intensity=flatness_change
            ))

    def _detect_legacy(self, frame: FrameFeatures, energy_change: float, flux_change: float) -> None:
        s = self.settings
        gap = s.min_time_between_events

        if energy_change > s.energy_threshold and can_add_event(self.events.energy_peaks, frame.time, gap):
            self.events.energy_peaks.append(EnergyPeakEvent(
                time=frame.time, value=frame.energy, change=energy_change
            ))

        if flux_change > s.spectral_flux_threshold and can_add_event(self.events.beats, frame.time, gap):
            logger.debug("Flux spike at %.3fs (ratio %.2f)", frame.time, flux_change)
            self.events.beats.append(FluxSpikeEvent(
                time=frame.time, value=frame.spectral_flux, change=flux_change
            ))

    def _detect_spectrum_shift(self, frame: FrameFeatures) -> None:
        # Current frame is already recorded; offset 1 is the previous frame
        previous = self.history.latest('spectral_flatness', offset=1)
        if previous is None:
            previous = 0.0
        delta = abs(frame.spectral_flatness - previous)

        if (delta > config.SPECTRUM_SHIFT_THRESHOLD
                and can_add_event(self.events.spectrum_events, frame.time, self.settings.min_time_between_events)):
            self.events.spectrum_events.append(SpectrumShiftEvent(
                time=frame.time, flatness=frame.spectral_flatness, delta=delta
            ))
