#!/usr/bin/env python3
"""
choreo-signals - Command Line Interface

Main entry point for running event timeline analysis on audio tracks.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

import config
from choreo import audio_io, export, synthetic
from choreo.analyzer import Analyzer
from choreo.audio_io import SampleBuffer
from choreo.errors import ChoreoError, FeatureExtractionFailure
from choreo.log import setup_logger
from choreo.settings import DEFAULT_SETTINGS, AnalysisSettings, validate_settings


AUDIO_EXTENSIONS = ['.wav', '.mp3', '.flac', '.ogg', '.m4a']


def parse_override(text: str) -> Dict:
    """
    Parse a KEY=VALUE settings override.

    Values are parsed as JSON when possible ("1.5" -> 1.5, "[0, 4]" -> [0, 4]),
    otherwise kept as strings.

    Raises:
        argparse.ArgumentTypeError: If text has no '='
    """
    if '=' not in text:
        raise argparse.ArgumentTypeError(f"Expected KEY=VALUE, got {text!r}")
    key, raw_value = text.split('=', 1)
    try:
        value = json.loads(raw_value)
    except json.JSONDecodeError:
        value = raw_value
    if isinstance(value, list):
        value = tuple(value)
    return {key.strip(): value}


def merge_overrides(overrides: Optional[List[Dict]]) -> Dict:
    merged: Dict = {}
    for override in overrides or []:
        merged.update(override)
    return merged


def analyze_and_export(
    buffer: SampleBuffer,
    track_name: str,
    output_dir: Path,
    settings: AnalysisSettings,
    refilter: Dict,
    generate_plots: bool = True,
    verbose: bool = False
) -> None:
    """
    Analyze one buffer, export its outputs, optionally re-filter and export again.

    Parameters:
        buffer: Decoded audio
        track_name: Name used for output files
        output_dir: Output directory for results
        settings: Settings for the full pass
        refilter: Settings overrides for a cached re-analysis (empty = skip)
        generate_plots: Whether to write plots
        verbose: Print verbose progress messages
    """
    analyzer = Analyzer(settings=settings)

    if verbose:
        print("2. Analyzing frames...")

    progress_mark = 0.0
    generator = analyzer.iter_analysis(buffer)
    try:
        while True:
            try:
                progress = next(generator)
            except StopIteration as stop:
                result = stop.value
                break
            if verbose and progress.fraction - progress_mark >= 0.25:
                progress_mark = progress.fraction
                print(f"   {progress.fraction * 100:.0f}% ({progress.frames_processed}/{progress.total_frames} frames)")
    except FeatureExtractionFailure as e:
        print(f"   WARNING: {e}; retrying with degraded settings")
        result = analyzer.analyze_with_fallback(buffer, settings)

    if verbose:
        print(f"   Processed {result.frames_processed} frames, {len(result.timeline)} timeline entries")
        print("3. Exporting results...")

    created_files = export.export_all_outputs(
        result, settings, output_dir, track_name,
        audio_duration=buffer.duration,
        sample_rate=buffer.sample_rate,
        generate_plots=generate_plots
    )
    print(f"Created {len(created_files)} output files in {output_dir}")

    with open(output_dir / f"{track_name}_summary.json") as f:
        export.print_analysis_summary(json.load(f), track_name)

    if refilter:
        if verbose:
            print(f"4. Re-analyzing with {refilter}...")
        refiltered = analyzer.reanalyze_with_settings(**refilter)
        refilter_name = f"{track_name}_refiltered"
        created_files = export.export_all_outputs(
            refiltered, settings.with_overrides(**refilter), output_dir, refilter_name,
            audio_duration=buffer.duration,
            sample_rate=buffer.sample_rate,
            generate_plots=generate_plots
        )
        print(f"Created {len(created_files)} re-filtered output files in {output_dir}")

        with open(output_dir / f"{refilter_name}_summary.json") as f:
            export.print_analysis_summary(json.load(f), refilter_name)


def process_single_track(
    file_path: Path,
    output_dir: Path,
    settings: AnalysisSettings,
    refilter: Dict,
    generate_plots: bool = True,
    verbose: bool = False
) -> bool:
    """
    Process a single audio track through the full pipeline.

    Parameters:
        file_path: Path to audio file
        output_dir: Output directory for results
        settings: Analysis settings
        refilter: Settings overrides for a cached re-analysis (empty = skip)
        generate_plots: Whether to write plots
        verbose: Print verbose progress messages

    Returns:
        True if successful, False otherwise
    """
    track_name = file_path.stem

    try:
        if verbose:
            print(f"\nProcessing: {file_path.name}")
            print("-" * 60)
            print("1. Decoding audio...")

        buffer = audio_io.load_audio(file_path)

        if verbose:
            print(f"   Duration: {buffer.duration:.2f}s, Sample rate: {buffer.sample_rate} Hz, "
                  f"Channels: {buffer.num_channels}")

        analyze_and_export(buffer, track_name, output_dir, settings, refilter, generate_plots, verbose)
        return True

    except (ChoreoError, OSError, ValueError, TypeError) as e:
        print(f"ERROR processing {file_path.name}: {e}", file=sys.stderr)
        if verbose:
            import traceback
            traceback.print_exc()
        return False


def process_directory(
    input_dir: Path,
    output_dir: Path,
    settings: AnalysisSettings,
    refilter: Dict,
    generate_plots: bool = True,
    verbose: bool = False
) -> Dict[str, int]:
    """
    Process all audio files in a directory.

    Parameters:
        input_dir: Input directory containing audio files
        output_dir: Output directory for results
        settings: Analysis settings
        refilter: Settings overrides for a cached re-analysis (empty = skip)
        generate_plots: Whether to write plots
        verbose: Print verbose messages

    Returns:
        Dict with success/failure counts
    """
    audio_files = []
    for ext in AUDIO_EXTENSIONS:
        audio_files.extend(input_dir.glob(f'*{ext}'))
        audio_files.extend(input_dir.glob(f'*{ext.upper()}'))

    if not audio_files:
        print(f"No audio files found in {input_dir}")
        return {'success': 0, 'failed': 0}

    print(f"Found {len(audio_files)} audio files")

    success_count = 0
    failed_count = 0

    for audio_file in sorted(set(audio_files)):
        track_output_dir = output_dir / audio_file.stem
        success = process_single_track(
            audio_file, track_output_dir, settings, refilter, generate_plots, verbose
        )

        if success:
            success_count += 1
        else:
            failed_count += 1

    print(f"\nProcessing complete: {success_count} successful, {failed_count} failed")

    return {'success': success_count, 'failed': failed_count}


def run_demo_mode(
    output_dir: Path,
    settings: AnalysisSettings,
    refilter: Dict,
    generate_plots: bool = True,
    verbose: bool = False
) -> bool:
    """
    Run demo mode using synthetic test tracks.

    Parameters:
        output_dir: Output directory for demo results
        settings: Analysis settings
        refilter: Settings overrides for a cached re-analysis (empty = skip)
        generate_plots: Whether to write plots
        verbose: Print verbose messages

    Returns:
        True if successful
    """
    print("Running demo mode with synthetic audio...")

    sr = synthetic.SAMPLE_RATE
    test_tracks = [
        {
            'name': 'demo_click_track',
            'audio': synthetic.generate_click_track(duration=20.0, sr=sr),
            'description': '120 BPM click track'
        },
        {
            'name': 'demo_build_drop',
            'audio': synthetic.generate_build_then_drop(duration=30.0, sr=sr)[0],
            'description': 'Build-then-drop pattern'
        },
        {
            'name': 'demo_contrast',
            'audio': synthetic.generate_section_contrast(duration=30.0, sr=sr)[0],
            'description': 'Section contrast pattern'
        }
    ]

    print(f"Generated {len(test_tracks)} synthetic test tracks")

    for track_info in test_tracks:
        print(f"\nProcessing: {track_info['name']} ({track_info['description']})")
        print("-" * 60)

        try:
            buffer = audio_io.buffer_from_array(track_info['audio'], sr)
            track_output_dir = output_dir / track_info['name']
            analyze_and_export(
                buffer, track_info['name'], track_output_dir,
                settings, refilter, generate_plots, verbose
            )

        except (ChoreoError, OSError, ValueError, TypeError) as e:
            print(f"ERROR: {e}", file=sys.stderr)
            if verbose:
                import traceback
                traceback.print_exc()
            return False

    print(f"\nDemo complete! Results saved to {output_dir}")
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='choreo-signals - Audio event timelines for synchronized animation',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Analyze single file
  %(prog)s track.wav --output results/

  # Analyze directory
  %(prog)s tracks/ --output results/

  # Run demo mode
  %(prog)s --demo --output demo_results/

  # Override settings, then re-filter transients from the cache
  %(prog)s track.wav -o results/ --set hop_size=1024 --refilter high_freq_onset_threshold=2.0

  # Verbose output with a log file
  %(prog)s track.wav --output results/ --verbose --log-file logs/choreo.log
        """
    )

    parser.add_argument(
        'input',
        nargs='?',
        type=str,
        help='Input audio file or directory (not needed for --demo)'
    )

    parser.add_argument(
        '--output', '-o',
        type=str,
        required=True,
        help='Output directory for results'
    )

    parser.add_argument(
        '--demo',
        action='store_true',
        help='Run demo mode with synthetic test tracks (no input file needed)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Print verbose progress messages'
    )

    parser.add_argument(
        '--no-plots',
        action='store_true',
        help='Skip plot generation'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write logs to this file (rotated)'
    )

    # Settings overrides
    parser.add_argument(
        '--fft-window-size',
        type=int,
        help=f'Analysis window size in samples (default: {config.FFT_WINDOW_SIZE})'
    )

    parser.add_argument(
        '--hop-size',
        type=int,
        help=f'Hop size in samples (default: {config.HOP_SIZE})'
    )

    for band, default in DEFAULT_SETTINGS.onset_thresholds().items():
        parser.add_argument(
            f'--{band}-onset',
            type=float,
            dest=f'{band}_freq_onset_threshold',
            help=f'{band.capitalize()} band onset ratio threshold (default: {default})'
        )

    parser.add_argument(
        '--set',
        dest='overrides',
        action='append',
        type=parse_override,
        metavar='KEY=VALUE',
        help='Override any analysis setting (repeatable)'
    )

    parser.add_argument(
        '--refilter',
        action='append',
        type=parse_override,
        metavar='KEY=VALUE',
        help='After the full pass, re-analyze from cache with this override (repeatable)'
    )

    return parser


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.demo and not args.input:
        parser.error("Either provide an input file/directory or use --demo")

    setup_logger(level='DEBUG' if args.verbose else 'WARNING', log_file=args.log_file)

    overrides = merge_overrides(args.overrides)
    if args.fft_window_size:
        overrides['fft_window_size'] = args.fft_window_size
    if args.hop_size:
        overrides['hop_size'] = args.hop_size
    for band in ('low', 'mid', 'high'):
        threshold = getattr(args, f'{band}_freq_onset_threshold')
        if threshold is not None:
            overrides[f'{band}_freq_onset_threshold'] = threshold

    try:
        settings = DEFAULT_SETTINGS.with_overrides(**overrides)
        validate_settings(settings)
    except (TypeError, ValueError) as e:
        parser.error(f"Invalid settings: {e}")

    refilter = merge_overrides(args.refilter)
    generate_plots = not args.no_plots
    output_dir = Path(args.output)

    if args.demo:
        success = run_demo_mode(output_dir, settings, refilter, generate_plots, args.verbose)
        sys.exit(0 if success else 1)

    input_path = Path(args.input)

    if not input_path.exists():
        print(f"ERROR: Input path does not exist: {input_path}", file=sys.stderr)
        sys.exit(1)

    if input_path.is_file():
        success = process_single_track(
            input_path, output_dir, settings, refilter, generate_plots, args.verbose
        )
        sys.exit(0 if success else 1)

    elif input_path.is_dir():
        results = process_directory(
            input_path, output_dir, settings, refilter, generate_plots, args.verbose
        )
        sys.exit(0 if results['failed'] == 0 else 1)

    else:
        print(f"ERROR: Invalid input path: {input_path}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
