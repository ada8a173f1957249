"""
Timebase Module - Frame Grid and Time Axis Utilities

Provides deterministic frame start positions and time conversions for the
streaming analysis, plus clamping helpers that keep exported timestamps
within track duration bounds.

DESIGN CONSTRAINTS:
- Frame starts: i = 0, H, 2H, ... while i < total_samples
- Frame time is the window start: t = i / sample_rate
- The last frame may extend past the buffer end (it is zero padded)
- Deterministic: same inputs -> same outputs
"""

import math
from typing import Dict, Iterator, List, Tuple


# =============================================================================
# CONSTANTS
# =============================================================================

EPSILON_SEC: float = 1e-6  # Floating point tolerance for comparisons


# =============================================================================
# FRAME GRID
# =============================================================================

def compute_frame_count(total_samples: int, hop_size: int) -> int:
    """
    Number of frames the streaming pass visits.

    Parameters:
        total_samples: Samples in the analyzed channel
        hop_size: Samples between window starts

    Returns:
        ceil(total_samples / hop_size), 0 for empty input
    """
    if total_samples <= 0 or hop_size <= 0:
        return 0
    return int(math.ceil(total_samples / hop_size))


def iter_frame_starts(total_samples: int, hop_size: int) -> Iterator[int]:
    """
    Iterate frame start sample indices 0, H, 2H, ... below total_samples.

    Parameters:
        total_samples: Samples in the analyzed channel
        hop_size: Samples between window starts

    Returns:
        Iterator over the start sample index of each frame

    Raises:
        ValueError: If hop_size is not positive
    """
    if hop_size <= 0:
        raise ValueError(f"hop_size must be positive, got {hop_size}")
    return iter(range(0, max(0, total_samples), hop_size))


def sample_to_time(sample_index: int, sample_rate: int) -> float:
    """Convert a sample index to seconds."""
    return sample_index / float(sample_rate)


# =============================================================================
# CLAMPING HELPERS
# =============================================================================

def clamp_point_event(
    event_time: float,
    duration_sec: float,
    epsilon: float = EPSILON_SEC
) -> Tuple[float, bool]:
    """
    Clamp a point event time to valid range [0, duration_sec].

    Parameters:
        event_time: Event timestamp in seconds
        duration_sec: Track duration in seconds
        epsilon: Tolerance for out-of-bounds detection

    Returns:
        Tuple of (clamped_time, was_clamped)
        - clamped_time: Time clamped to [0, duration_sec]
        - was_clamped: True if the time was modified
    """
    was_clamped = False
    clamped_time = event_time

    if event_time < 0:
        clamped_time = 0.0
        was_clamped = True
    elif event_time > duration_sec + epsilon:
        clamped_time = duration_sec
        was_clamped = True

    return float(clamped_time), was_clamped


def validate_point_events(
    events: List[Dict],
    duration_sec: float,
    time_key: str = 'time',
    drop_invalid: bool = False,
    epsilon: float = EPSILON_SEC
) -> List[Dict]:
    """
    Validate and optionally clamp point events with a time field.

    Parameters:
        events: List of event dicts with time_key field
        duration_sec: Track duration in seconds
        time_key: Key name for the time field (default 'time')
        drop_invalid: If True, drop events beyond duration instead of clamping
        epsilon: Tolerance for out-of-bounds detection

    Returns:
        List of events with clamped times (or filtered if drop_invalid=True)
    """
    validated = []

    for event in events:
        if time_key not in event:
            validated.append(event.copy())
            continue

        event_copy = event.copy()
        clamped_time, was_clamped = clamp_point_event(event_copy[time_key], duration_sec, epsilon)

        if was_clamped and drop_invalid:
            continue

        if was_clamped:
            event_copy[time_key] = clamped_time

        validated.append(event_copy)

    return validated
