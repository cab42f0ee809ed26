"""Lectern -- assemble audio files into a single chaptered, tagged M4B audiobook.

Core modules:
    config       -- Configuration via pydantic-settings (LECTERN_* env vars, .env)
    cli          -- Click CLI: convert, probe, chapters, locate
    models       -- Enums, constants, ConversionConfig and the input tagged union
    errors       -- LecternError hierarchy
    ffprobe      -- Stream/duration/chapter inspection via ffprobe JSON output.
                    Every failure raises ProbeFailed.
    sources      -- Input classification (container, directory, single file)
    concat       -- Demuxer vs. filter-graph selection and their input files
    chapters     -- Chapter generation, extraction, validation, ripple shifting
    chapter_file -- Chapter sidecar import (txt, json, cue, ini)
    ffmetadata   -- FFMETADATA1 generation and parsing
    cover        -- Cover art downscaling
    command      -- ffmpeg argument vector construction
    executor     -- ffmpeg process lifecycle and atomic output commit
    timeline     -- Global timestamp -> (file, offset) resolution
    timecode     -- HH:MM:SS[.mmm] formatting and parsing
"""
