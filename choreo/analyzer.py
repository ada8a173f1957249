"""
Analyzer Module - Analysis Pass Orchestration

Drives one streaming pass (frame adapter -> history -> detectors), then the
end-of-stream post-passes (drops -> tempo -> consolidation -> timeline).

PASS LIFECYCLE:
    analyzer = Analyzer()
    result = analyzer.analyze(buffer)                       # full pass
    result = analyzer.reanalyze_with_settings(              # cached re-filter
        low_freq_onset_threshold=1.5
    )

    # Cooperative form: yields AnalysisProgress every N frames
    gen = analyzer.iter_analysis(buffer, cancel_token=token)

An analyzer owns its feature history and re-filter cache; one pass at a
time per instance.
"""

import logging
import threading
import time
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, Generator, Optional, Union

import numpy as np

import config
from choreo.audio_io import SampleBuffer, extract_waveform, load_audio, validate_buffer
from choreo.cache import AnalysisCache
from choreo.detectors import EventDetector
from choreo.errors import AnalysisInProgress, FeatureExtractionFailure, NoCachedData
from choreo.events import AnalysisProgress, AnalysisResult, EventCollections, TempoEstimate
from choreo.extraction import SimpleExtractor, SpectralExtractor
from choreo.frames import iter_frame_features
from choreo.history import FeatureHistory
from choreo.postprocess import consolidate_collections, detect_drops
from choreo.settings import DEFAULT_SETTINGS, AnalysisSettings, is_refilterable_change, validate_settings
from choreo.tempo import estimate_tempo
from choreo.timebase import compute_frame_count
from choreo.timeline import format_timeline

logger = logging.getLogger(__name__)

Extractor = Callable[[np.ndarray, int], Dict]
PassGenerator = Generator[AnalysisProgress, None, AnalysisResult]


class CancellationToken:
    """Shared cancellation flag, checked once per frame."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def run_to_completion(generator: PassGenerator) -> AnalysisResult:
    """Exhaust a pass generator and return its result."""
    while True:
        try:
            next(generator)
        except StopIteration as stop:
            return stop.value


class Analyzer:
    """
    Streaming audio event analyzer.

    Parameters:
        settings: Default settings for passes (None = DEFAULT_SETTINGS)
        extractor: Feature extraction callable (None = SpectralExtractor)
        yield_every_frames: Frames between cooperative suspension points
    """

    def __init__(
        self,
        settings: Optional[AnalysisSettings] = None,
        extractor: Optional[Extractor] = None,
        yield_every_frames: int = config.YIELD_EVERY_FRAMES
    ):
        if yield_every_frames <= 0:
            raise ValueError(f"yield_every_frames must be positive, got {yield_every_frames}")

        self.settings = settings if settings is not None else DEFAULT_SETTINGS
        validate_settings(self.settings)
        self.extractor = extractor if extractor is not None else SpectralExtractor()
        self.yield_every_frames = yield_every_frames

        self.history: Optional[FeatureHistory] = None
        self.last_result: Optional[AnalysisResult] = None
        self._buffer: Optional[SampleBuffer] = None
        self._cache: Optional[AnalysisCache] = None
        self._lock = threading.Lock()

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    @property
    def is_analyzing(self) -> bool:
        return self._lock.locked()

    @property
    def has_cache(self) -> bool:
        return self._cache is not None

    def iter_analysis(
        self,
        buffer: SampleBuffer,
        settings: Optional[AnalysisSettings] = None,
        cancel_token: Optional[CancellationToken] = None,
        tempo_hint: Optional[TempoEstimate] = None
    ) -> PassGenerator:
        """
        Full analysis pass as a generator.

        Yields an AnalysisProgress every `yield_every_frames` frames; the
        generator's return value is the AnalysisResult.

        Raises:
            AnalysisInProgress: If another pass is running on this instance
            DecodeFailure: If the buffer is unusable
            FeatureExtractionFailure: If every frame failed extraction
        """
        self._acquire()
        try:
            result = yield from self._run_pass(
                buffer,
                settings if settings is not None else self.settings,
                cancel_token,
                tempo_hint,
                self.extractor
            )
            return result
        finally:
            self._lock.release()

    def analyze(
        self,
        buffer: SampleBuffer,
        settings: Optional[AnalysisSettings] = None,
        cancel_token: Optional[CancellationToken] = None,
        tempo_hint: Optional[TempoEstimate] = None
    ) -> AnalysisResult:
        """
        Run a full analysis pass to completion.

        Parameters:
            buffer: Decoded audio (channel 0 is analyzed)
            settings: Settings for this pass (None = analyzer default)
            cancel_token: Optional cancellation flag
            tempo_hint: Optional external beat tracker estimate

        Returns:
            AnalysisResult (flagged cancelled if stopped early)
        """
        return run_to_completion(self.iter_analysis(buffer, settings, cancel_token, tempo_hint))

    def reanalyze_with_settings(self, **overrides) -> AnalysisResult:
        """
        Re-run analysis of the last buffer with some settings changed.

        Onset-threshold-only changes are served from the re-filter cache;
        any other change, or a missing cache, falls back to a full pass
        over the cached buffer.

        Parameters:
            **overrides: Settings field name to new value

        Returns:
            AnalysisResult

        Raises:
            TypeError: If an override names an unknown settings field
            NoCachedData: If no buffer has ever been analyzed
            AnalysisInProgress: If another pass is running on this instance
        """
        self._acquire()
        try:
            if self._buffer is None:
                raise NoCachedData("No audio has been analyzed yet; nothing to re-analyze")

            base = self._cache.settings if self._cache is not None else self.settings
            new_settings = base.with_overrides(**overrides)
            validate_settings(new_settings)

            try:
                return self._refilter(new_settings)
            except NoCachedData as exc:
                logger.info("%s - running full analysis from cached buffer", exc)

            # A full re-run keeps the tracker hint and extractor of the pass it replaces
            cache = self._cache
            if cache is None:
                return run_to_completion(self._run_pass(
                    self._buffer, new_settings, None, None, self.extractor
                ))
            return run_to_completion(self._run_pass(
                self._buffer, new_settings, None, cache.tempo_hint,
                cache.extractor if cache.extractor is not None else self.extractor,
                degraded=cache.degraded
            ))
        finally:
            self._lock.release()

    def analyze_with_fallback(
        self,
        buffer: SampleBuffer,
        settings: Optional[AnalysisSettings] = None
    ) -> AnalysisResult:
        """
        Full pass, retried with degraded settings if extraction fails.

        The degraded pass doubles window and hop and uses the time-domain
        SimpleExtractor; its timeline may be less complete.

        Raises:
            DecodeFailure: If the buffer is unusable (not retried)
        """
        settings = settings if settings is not None else self.settings
        try:
            return self.analyze(buffer, settings)
        except FeatureExtractionFailure as exc:
            logger.warning("Regular analysis failed (%s), falling back to simple analysis", exc)

        self._acquire()
        try:
            return run_to_completion(self._run_pass(
                buffer, settings.degraded(), None, None, SimpleExtractor(), degraded=True
            ))
        finally:
            self._lock.release()

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _acquire(self) -> None:
        if not self._lock.acquire(blocking=False):
            raise AnalysisInProgress("An analysis pass is already running on this analyzer")

    def _run_pass(
        self,
        buffer: SampleBuffer,
        settings: AnalysisSettings,
        cancel_token: Optional[CancellationToken],
        tempo_hint: Optional[TempoEstimate],
        extractor: Extractor,
        degraded: bool = False
    ) -> PassGenerator:
        """Stream every frame, cache what was observed, run post-passes."""
        validate_buffer(buffer)
        validate_settings(settings)

        start = time.perf_counter()
        total_frames = compute_frame_count(buffer.num_samples, settings.hop_size)
        logger.info(
            "Analyzing %.2fs of audio at %d Hz: %d frames (window %d, hop %d)",
            buffer.duration, buffer.sample_rate, total_frames,
            settings.fft_window_size, settings.hop_size
        )

        self._buffer = buffer
        self._cache = None
        self.history = FeatureHistory(settings.history_length())
        detector = EventDetector(settings, self.history)
        waveform = extract_waveform(buffer.channel(0), buffer.sample_rate)

        frames_processed = 0
        cancelled = False
        last_time = 0.0

        for frame in iter_frame_features(buffer.channel(0), buffer.sample_rate, settings, extractor):
            if cancel_token is not None and cancel_token.cancelled:
                cancelled = True
                logger.info("Analysis cancelled after %d frames (%.2fs)", frames_processed, last_time)
                break

            detector.process(frame)
            frames_processed += 1
            last_time = frame.time

            if frames_processed % self.yield_every_frames == 0:
                yield AnalysisProgress(
                    frames_processed=frames_processed,
                    total_frames=total_frames,
                    time=last_time
                )

        events = detector.events
        events.sort_by_time()

        self._cache = AnalysisCache(
            buffer=buffer,
            settings=settings,
            candidates=detector.candidates,
            events=events.copy(),
            end_time=self.history.last_time(),
            frames_processed=frames_processed,
            cancelled=cancelled,
            waveform=waveform,
            tempo_hint=tempo_hint,
            extractor=extractor,
            degraded=degraded
        )

        result = self._finish(events, self._cache)
        logger.info(
            "Pass complete in %.2fs: %d frames, %d candidates, %d timeline entries",
            time.perf_counter() - start, frames_processed,
            len(detector.candidates), len(result.timeline)
        )
        return result

    def _refilter(self, settings: AnalysisSettings) -> AnalysisResult:
        """
        Serve a settings change from the cache.

        Raises:
            NoCachedData: If there is no usable cache for this change
        """
        cache = self._cache
        if cache is None:
            raise NoCachedData("No cached analysis available")
        if cache.cancelled:
            raise NoCachedData("Cached analysis is from a cancelled pass")
        if not is_refilterable_change(cache.settings, settings):
            raise NoCachedData("Settings change requires new feature extraction")

        events = cache.refilter(settings)
        self._cache = replace(cache, settings=settings, events=events.copy())
        return self._finish(events, self._cache)

    def _finish(self, events: EventCollections, cache: AnalysisCache) -> AnalysisResult:
        """Drops, tempo, consolidation and formatting over pre-consolidation events."""
        events.sort_by_time()
        events.drops = detect_drops(events.energy_peaks, events.low_frequency_events)

        tempo, beat_grid = estimate_tempo(
            beat_times=[beat.time for beat in events.beats],
            transient_times=[transient.time for transient in events.transients],
            end_time=cache.end_time,
            tracker_hint=cache.tempo_hint
        )

        consolidated = consolidate_collections(events, cache.settings.min_time_between_events)
        timeline = format_timeline(consolidated, beat_grid)

        result = AnalysisResult(
            events=consolidated,
            tempo=tempo,
            beat_grid=beat_grid,
            timeline=timeline,
            duration=cache.end_time,
            waveform=cache.waveform,
            frames_processed=cache.frames_processed,
            cancelled=cache.cancelled,
            degraded=cache.degraded
        )
        self.last_result = result
        return result


def analyze_file(
    file_path: Union[str, Path],
    settings: Optional[AnalysisSettings] = None
) -> AnalysisResult:
    """
    Decode a file and analyze it, with the degraded fallback on failure.

    Parameters:
        file_path: Path to audio file
        settings: Analysis settings (None = defaults)

    Returns:
        AnalysisResult

    Raises:
        FileNotFoundError: If file doesn't exist
        DecodeFailure: If the file cannot be decoded
    """
    buffer = load_audio(file_path)
    analyzer = Analyzer(settings=settings)
    return analyzer.analyze_with_fallback(buffer)
