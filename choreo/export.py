"""
Export Module

Generate JSON outputs and plots for analysis results.
All outputs follow versioned schema for consistency.
"""

import json
from collections import Counter
from pathlib import Path
from typing import Dict, List

import numpy as np
import matplotlib
matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt

import config
from choreo import timebase
from choreo.events import AnalysisResult, event_to_dict
from choreo.settings import AnalysisSettings
from choreo.timeline import format_results


# Timeline entry types in plotting order (bottom to top)
TIMELINE_TYPES: List[str] = [
    'bass', 'beat', 'high_freq', 'mid_range', 'timbre',
    'dynamic_moderate', 'dynamic_significant', 'dynamic_dramatic',
    'transient', 'grid_beat', 'drop'
]


class NumpyEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy types."""
    def default(self, obj):
        if isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.floating):
            return float(obj)
        elif isinstance(obj, np.ndarray):
            return obj.tolist()
        elif isinstance(obj, np.bool_):
            return bool(obj)
        return super().default(obj)


def create_timeline_json(
    result: AnalysisResult,
    settings: AnalysisSettings,
    audio_duration: float,
    sample_rate: int
) -> Dict:
    """
    Create complete timeline JSON following schema.

    Timeline entry times are clamped to the audio duration (same-frame
    transient offsets can nudge the last frame's events past it).

    Parameters:
        result: AnalysisResult from the analyzer
        settings: Settings the result was produced with
        audio_duration: Duration of the decoded audio in seconds
        sample_rate: Sample rate of the decoded audio

    Returns:
        Complete timeline dict ready for JSON serialization
    """
    timeline = timebase.validate_point_events(result.timeline, audio_duration)
    consumer = format_results(timeline, result.tempo, result.duration, result.waveform)

    return {
        'schema_version': config.SCHEMA_VERSION,

        'track_metadata': {
            'duration': result.duration,
            'audio_duration': audio_duration,
            'sample_rate': sample_rate,
            'frames_processed': result.frames_processed,
            'cancelled': result.cancelled,
            'degraded': result.degraded
        },

        'params': settings.to_dict(),

        **consumer,
        'beat_grid': [beat.to_dict() for beat in result.beat_grid],

        'events': {
            name: [event_to_dict(event) for event in events]
            for name, events in result.events.items()
        }
    }


def create_summary_json(timeline_json: Dict) -> Dict:
    """
    Create summary JSON with key statistics.

    Parameters:
        timeline_json: Full timeline JSON from create_timeline_json

    Returns:
        Summary dict with top-level stats
    """
    type_counts = Counter(entry['type'] for entry in timeline_json['timeline'])

    drops = timeline_json['events'].get('drops', [])
    top_drops = [
        {'time': drop['time'], 'confidence': drop['confidence']}
        for drop in sorted(drops, key=lambda d: d['confidence'], reverse=True)[:5]
    ]

    transient_bands = Counter(t['band'] for t in timeline_json['events'].get('transients', []))

    return {
        'schema_version': config.SCHEMA_VERSION,
        'duration_sec': timeline_json['track_metadata']['duration'],
        'tempo': timeline_json['tempo'],
        'num_timeline_entries': len(timeline_json['timeline']),
        'entries_by_type': dict(sorted(type_counts.items())),
        'transients_by_band': {band: transient_bands.get(band, 0) for band in ('low', 'mid', 'high')},
        'num_drops': len(drops),
        'top_drops': top_drops,
        'cancelled': timeline_json['track_metadata']['cancelled'],
        'degraded': timeline_json['track_metadata']['degraded']
    }


def save_json(data: Dict, output_path: Path) -> None:
    """
    Save data as JSON with pretty printing.

    Parameters:
        data: Dictionary to save
        output_path: Path to output file
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w') as f:
        json.dump(data, f, indent=2, cls=NumpyEncoder)


def plot_timeline(
    result: AnalysisResult,
    output_path: Path,
    title: str = "Event Timeline"
) -> None:
    """
    Plot waveform, event raster and per-band transients.

    Parameters:
        result: AnalysisResult from the analyzer
        output_path: Path to save plot
        title: Plot title
    """
    fig, axes = plt.subplots(3, 1, figsize=config.PLOT_FIGSIZE, sharex=True)

    # Plot 1: Waveform with drops and downbeats
    ax1 = axes[0]
    if result.waveform:
        times = [point['time'] for point in result.waveform]
        values = [point['value'] for point in result.waveform]
        ax1.fill_between(times, values, color='gray', alpha=0.5, linewidth=0)

    for beat in result.beat_grid:
        if beat.is_downbeat:
            ax1.axvline(beat.time, color='green', alpha=0.3, linestyle=':', linewidth=1)
    for drop in result.events.drops:
        ax1.axvline(drop.time, color='purple', alpha=0.7, linestyle='--', linewidth=1.5)

    ax1.set_ylabel('Amplitude', fontsize=10)
    tempo_label = f" ({result.tempo.bpm} BPM)" if result.tempo is not None else ""
    ax1.set_title(title + tempo_label, fontsize=12, fontweight='bold')
    ax1.grid(True, alpha=0.3)
    ax1.set_ylim(-0.05, 1.05)

    # Plot 2: Event raster by timeline type
    ax2 = axes[1]
    for row, entry_type in enumerate(TIMELINE_TYPES):
        times = [entry['time'] for entry in result.timeline if entry['type'] == entry_type]
        if times:
            ax2.scatter(times, [row] * len(times), s=8, marker='|')
    ax2.set_yticks(range(len(TIMELINE_TYPES)))
    ax2.set_yticklabels(TIMELINE_TYPES, fontsize=7)
    ax2.grid(True, alpha=0.3)

    # Plot 3: Transient intensity per band
    ax3 = axes[2]
    colors = {'low': 'red', 'mid': 'orange', 'high': 'blue'}
    for band, color in colors.items():
        band_transients = [t for t in result.events.transients if t.band == band]
        if band_transients:
            ax3.vlines(
                [t.time for t in band_transients], 0,
                [t.intensity for t in band_transients],
                colors=color, alpha=0.7, label=band
            )
    ax3.axhline(1.0, color='black', alpha=0.4, linewidth=1)
    ax3.set_xlabel('Time (seconds)', fontsize=10)
    ax3.set_ylabel('Onset factor', fontsize=10)
    if result.events.transients:
        ax3.legend(loc='upper right', fontsize=8)
    ax3.grid(True, alpha=0.3)

    plt.tight_layout()

    output_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_path, dpi=config.PLOT_DPI, bbox_inches='tight')
    plt.close(fig)


def export_all_outputs(
    result: AnalysisResult,
    settings: AnalysisSettings,
    output_dir: Path,
    track_name: str,
    audio_duration: float,
    sample_rate: int,
    generate_plots: bool = True
) -> List[Path]:
    """
    Export all outputs: JSON files and plots.

    Parameters:
        result: AnalysisResult from the analyzer
        settings: Settings the result was produced with
        output_dir: Output directory path
        track_name: Name of track (for filenames)
        audio_duration: Duration of the decoded audio in seconds
        sample_rate: Sample rate of the decoded audio
        generate_plots: Whether to generate plot files

    Returns:
        List of paths to created files
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    created_files = []

    timeline_json = create_timeline_json(result, settings, audio_duration, sample_rate)
    timeline_path = output_dir / f"{track_name}_timeline.json"
    save_json(timeline_json, timeline_path)
    created_files.append(timeline_path)

    summary_json = create_summary_json(timeline_json)
    summary_path = output_dir / f"{track_name}_summary.json"
    save_json(summary_json, summary_path)
    created_files.append(summary_path)

    if generate_plots:
        plot_path = output_dir / f"{track_name}_timeline.png"
        plot_timeline(result, plot_path, title=f"Event Timeline: {track_name}")
        created_files.append(plot_path)

    return created_files


def print_analysis_summary(summary_json: Dict, track_name: str) -> None:
    """
    Print concise analysis summary to console.

    Parameters:
        summary_json: Summary JSON dict
        track_name: Track name
    """
    print(f"\n{'='*60}")
    print(f"Analysis Summary: {track_name}")
    print(f"{'='*60}")
    print(f"Duration: {summary_json['duration_sec']:.2f} seconds")

    tempo = summary_json['tempo']
    if tempo is not None:
        print(f"Tempo: {tempo['bpm']} BPM (confidence: {tempo['confidence']:.2f}, from {tempo['source']})")
    else:
        print("Tempo: not detected")

    print(f"Timeline entries: {summary_json['num_timeline_entries']}")
    for entry_type, count in summary_json['entries_by_type'].items():
        print(f"  {entry_type}: {count}")

    bands = summary_json['transients_by_band']
    print(f"Transients by band: low={bands['low']}, mid={bands['mid']}, high={bands['high']}")

    if summary_json['top_drops']:
        print(f"\nTop {len(summary_json['top_drops'])} drops:")
        for i, drop in enumerate(summary_json['top_drops'], 1):
            print(f"  {i}. Time: {drop['time']:.2f}s, Confidence: {drop['confidence']:.3f}")

    if summary_json['cancelled']:
        print("\nNote: analysis was cancelled; results are partial")
    if summary_json['degraded']:
        print("\nNote: produced by the degraded fallback pass")

    print(f"{'='*60}\n")
