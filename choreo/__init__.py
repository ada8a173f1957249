"""
choreo-signals - Source Modules

This package contains the core modules for streaming audio event analysis:
- audio_io: Audio decoding, sample buffers and waveform extraction
- extraction: Per-window spectral feature extraction (energy, loudness, rms, flatness)
- frames: Frame feature adapter (windowing, spectral flux, band energies)
- history: Bounded rolling feature history and moving averages
- detectors: Per-frame event detection rules
- postprocess: Drop detection and result consolidation
- tempo: Tempo estimation and beat grid synthesis
- cache: Raw transient candidates and threshold re-filtering
- timeline: Animation timeline formatting
- analyzer: Analysis pass orchestration, cancellation and re-analysis
- export: JSON and plot generation
"""

__version__ = "1.0.0"
