#!/usr/bin/env python3
"""Generate deterministic synthetic audio fixtures.

Materializes the generators in choreo.synthetic as WAV files so the CLI
(and any external consumer of exported timelines) can be run against
stable inputs.

Format: WAV IEEE float32, mono, 22050 Hz
"""

import hashlib
import json
import sys
from pathlib import Path

from scipy.io import wavfile

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from choreo import synthetic  # noqa: E402

SAMPLE_RATE = synthetic.SAMPLE_RATE
OUTPUT_DIR = Path(__file__).parent / "synthetic_audio"


def write_wav(filepath: Path, audio) -> str:
    """Write WAV (IEEE float32) and return SHA256 of file bytes."""
    wavfile.write(filepath, SAMPLE_RATE, audio)
    with open(filepath, 'rb') as f:
        return hashlib.sha256(f.read()).hexdigest()


def main():
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)

    fixtures = [
        ("click_track_120bpm", lambda: synthetic.generate_click_track(duration=20.0)),
        ("kick_pattern_120bpm", lambda: synthetic.generate_kick_pattern(duration=20.0)),
        ("build_drop", lambda: synthetic.generate_build_then_drop(duration=30.0)[0]),
        ("contrast", lambda: synthetic.generate_section_contrast(duration=30.0)[0]),
        ("repetitive_loop", lambda: synthetic.generate_repetitive_loop(duration=30.0)),
    ]

    manifest_entries = []

    for name, generator in fixtures:
        audio = generator()
        filepath = OUTPUT_DIR / f"{name}.wav"
        sha256 = write_wav(filepath, audio)

        print(f"{name}.wav: {sha256}")

        manifest_entries.append({
            "name": name,
            "filename": f"{name}.wav",
            "duration_sec": len(audio) / SAMPLE_RATE,
            "sample_rate_hz": SAMPLE_RATE,
            "channels": 1,
            "sha256_bytes": sha256,
        })

    manifest = {
        "version": "1.0",
        "fixtures": manifest_entries,
    }

    manifest_path = OUTPUT_DIR / "fixtures_manifest.json"
    with open(manifest_path, 'w') as f:
        json.dump(manifest, f, indent=2)

    print(f"\nManifest written to: {manifest_path}")


if __name__ == "__main__":
    main()
