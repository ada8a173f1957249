"""
Error Taxonomy

Exceptions raised by the analysis pipeline. Per-frame failures are absorbed
by the frame adapter; everything else propagates to the caller.
"""

from typing import Optional


class ChoreoError(Exception):
    """Base class for all analysis errors."""


class DecodeFailure(ChoreoError):
    """Input audio could not be decoded or the sample buffer is unusable."""


class FeatureExtractionFailure(ChoreoError):
    """
    Feature extraction failed.

    Raised for a single frame (logged and skipped by the frame adapter) or
    for a whole pass when no frame could be extracted at all.

    Attributes:
        frame_index: Index of the failing frame (None for pass-level failures)
        time: Frame start time in seconds (None for pass-level failures)
    """

    def __init__(self, message: str, frame_index: Optional[int] = None, time: Optional[float] = None):
        super().__init__(message)
        self.frame_index = frame_index
        self.time = time


class NoCachedData(ChoreoError):
    """Re-analysis requested but no prior pass left data to work from."""


class UnreliableTempo(ChoreoError):
    """
    Estimated tempo falls outside the accepted BPM range.

    Attributes:
        bpm: The rejected BPM estimate
    """

    def __init__(self, bpm: float):
        super().__init__(f"Unreliable tempo detected: {bpm} BPM")
        self.bpm = bpm


class AnalysisInProgress(ChoreoError):
    """An analyzer instance was asked to start a pass while another is running."""
