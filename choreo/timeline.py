"""
Timeline Formatter

Maps consolidated event collections and the beat grid to a single
time-ordered list of timeline entries, each carrying suggested animation
parameters for the consuming visualizer.

Entry types: drop, transient, grid_beat, dynamic_<category>, timbre,
mid_range, high_freq, beat, bass.
"""

import math
from dataclasses import asdict
from typing import Dict, List, Optional

import numpy as np

import config
from choreo.events import BeatGridEntry, EventCollections, TempoEstimate, TransientEvent


# =============================================================================
# ANIMATION PARAMETERS
# =============================================================================

def drop_animation(confidence: float) -> Dict:
    return {
        'speed': 1.5 + confidence / 2,
        'bounce_factor': 0.4,
        'add_rotation': True,
        'rotation_amount': math.pi * 2,
        'height': 8
    }


def transient_animation(band: str, intensity: float) -> Dict:
    """
    Animation for a band transient.

    Low band: heavier bounce and height. Mid band: tilt with a short
    sequence delay. High band: fast, light and short.
    """
    params = {
        'speed': 1.2 + intensity / 4,
        'bounce_factor': 0.3,
        'sequential': band != 'low',
        'height': 3 + intensity
    }

    if band == 'low':
        params['bounce_factor'] = 0.5 + intensity / 4
        params['height'] = 4 + intensity * 2
    elif band == 'mid':
        params['add_tilt'] = True
        params['sequence_delay'] = 0.03
    elif band == 'high':
        params['speed'] = 1.5
        params['bounce_factor'] = 0.15
        params['sequence_delay'] = 0.02
        params['height'] = 2

    return params


def grid_beat_animation(is_downbeat: bool) -> Dict:
    return {
        'speed': 1.3 if is_downbeat else 1.1,
        'bounce_factor': 0.3 if is_downbeat else 0.2,
        'height': 4 if is_downbeat else 2.5,
        'sequential': not is_downbeat,
        'sequence_delay': 0.05,
        'add_rotation': is_downbeat,
        'rotation_amount': math.pi / 4 if is_downbeat else 0
    }


def dynamic_animation(category: str, intensity: float) -> Dict:
    if category == 'dramatic':
        return {
            'speed': 1.8 + intensity / 3,
            'bounce_factor': 0.45,
            'add_rotation': True,
            'rotation_amount': math.pi,
            'height': 7
        }
    if category == 'significant':
        return {
            'speed': 1.5 + intensity / 4,
            'bounce_factor': 0.35,
            'add_tilt': True,
            'height': 5
        }
    return {
        'speed': 1.2 + intensity / 5,
        'bounce_factor': 0.25,
        'sequential': True,
        'sequence_delay': 0.05,
        'height': 4
    }


def timbre_animation(intensity: float) -> Dict:
    return {
        'add_rotation': True,
        'rotation_amount': math.pi / 2 * intensity,
        'cinematic_rotation': True,
        'cinematic_rotation_speed': 0.3 * intensity,
        'randomize_order': True
    }


# =============================================================================
# FORMATTING
# =============================================================================

def _transient_entry(transient: TransientEvent) -> Dict:
    entry = asdict(transient)
    entry['type'] = 'transient'
    entry['subtype'] = transient.band
    entry['suggested_animation'] = transient_animation(transient.band, transient.intensity)
    return entry


def _grid_entry(beat: BeatGridEntry) -> Dict:
    return {
        'time': beat.time,
        'type': 'grid_beat',
        'subtype': 'downbeat' if beat.is_downbeat else 'beat',
        'intensity': beat.intensity,
        'beat': beat.beat,
        'bar': beat.bar,
        'suggested_animation': grid_beat_animation(beat.is_downbeat)
    }


def format_timeline(
    events: EventCollections,
    beat_grid: List[BeatGridEntry],
    seed: int = config.ANIMATION_SEED
) -> List[Dict]:
    """
    Build the animation timeline.

    Parameters:
        events: Consolidated event collections
        beat_grid: Synthesized beat grid
        seed: Seed for the randomized high-frequency reverse flag

    Returns:
        Timeline entries sorted by time (stable)
    """
    rng = np.random.default_rng(seed)
    timeline: List[Dict] = []

    for drop in events.drops:
        timeline.append({
            'time': drop.time,
            'type': 'drop',
            'intensity': drop.confidence,
            'suggested_animation': drop_animation(drop.confidence)
        })

    timeline.extend(_transient_entry(transient) for transient in events.transients)
    timeline.extend(_grid_entry(beat) for beat in beat_grid)

    for change in events.dynamic_changes:
        timeline.append({
            'time': change.time,
            'type': 'dynamic_' + change.category,
            'intensity': change.intensity,
            'suggested_animation': dynamic_animation(change.category, change.intensity)
        })

    for timbre in events.timbre_changes:
        timeline.append({
            'time': timbre.time,
            'type': 'timbre',
            'intensity': timbre.intensity,
            'suggested_animation': timbre_animation(timbre.intensity)
        })

    for event in events.mid_range_events:
        timeline.append({
            'time': event.time,
            'type': 'mid_range',
            'intensity': event.change,
            'suggested_animation': {
                'speed': 1.1 + event.change / 4,
                'bounce_factor': 0.2,
                'sequential': True,
                'add_tilt': True
            }
        })

    for event in events.high_frequency_events:
        timeline.append({
            'time': event.time,
            'type': 'high_freq',
            'intensity': event.change,
            'suggested_animation': {
                'speed': 1.3 + event.change / 3,
                'bounce_factor': 0.1,
                'sequential': True,
                'sequence_delay': 0.02,
                'reverse_drop_order': bool(rng.random() > 0.5)
            }
        })

    for beat in events.beats:
        timeline.append({
            'time': beat.time,
            'type': 'beat',
            'intensity': beat.change,
            'suggested_animation': {
                'speed': 1.0 + beat.change / 4,
                'bounce_factor': 0.2,
                'sequential': True,
                'sequence_delay': 0.05
            }
        })

    for event in events.low_frequency_events:
        timeline.append({
            'time': event.time,
            'type': 'bass',
            'intensity': event.value,
            'suggested_animation': {
                'bounce_factor': 0.3 + event.value / 3,
                'height': 5 + event.value * 2
            }
        })

    timeline.sort(key=lambda entry: entry['time'])
    return timeline


def format_results(
    timeline: List[Dict],
    tempo: Optional[TempoEstimate],
    duration: float,
    waveform: List[Dict[str, float]]
) -> Dict:
    """
    Assemble the consumer-facing result dictionary.

    Returns:
        Dictionary with timeline, tempo (or None), duration and waveform
    """
    return {
        'timeline': timeline,
        'tempo': tempo.to_dict() if tempo is not None else None,
        'duration': duration,
        'waveform': waveform
    }
