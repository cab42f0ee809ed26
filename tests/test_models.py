"""Tests for models.py -- enums, constants, data types."""

from pathlib import Path

import pytest

from lectern.models import (
    AUDIO_EXTENSIONS,
    CONTAINER_EXTENSIONS,
    AudioCodec,
    AudioParams,
    Chapter,
    ConcatMethod,
    ConversionConfig,
    ConversionState,
    ProcessingOptions,
)


class TestAudioCodec:
    def test_values(self):
        assert AudioCodec.COPY == "copy"
        assert AudioCodec.AAC == "aac"
        assert AudioCodec.OPUS == "opus"

    def test_encoder_names(self):
        assert AudioCodec.COPY.encoder == "copy"
        assert AudioCodec.AAC.encoder == "aac"
        assert AudioCodec.OPUS.encoder == "libopus"

    def test_from_string(self):
        assert AudioCodec("opus") is AudioCodec.OPUS


class TestConcatMethod:
    def test_values(self):
        assert ConcatMethod.DEMUXER == "demuxer"
        assert ConcatMethod.FILTER_GRAPH == "filter_graph"


class TestConversionState:
    def test_all_states(self):
        assert len(ConversionState) == 4


class TestExtensions:
    def test_containers_are_audio(self):
        assert CONTAINER_EXTENSIONS <= AUDIO_EXTENSIONS

    def test_common_formats(self):
        for ext in (".mp3", ".m4a", ".m4b", ".flac", ".ogg", ".opus", ".wav", ".aac"):
            assert ext in AUDIO_EXTENSIONS


class TestAudioParams:
    def test_matches_ignores_bitrate_and_duration(self):
        a = AudioParams("mp3", 44100, 2, 128000, 1000)
        b = AudioParams("mp3", 44100, 2, 64000, 9000)
        assert a.matches(b)

    def test_mismatch_sample_rate(self):
        a = AudioParams("mp3", 44100, 2, None, 1000)
        b = AudioParams("mp3", 48000, 2, None, 1000)
        assert not a.matches(b)


class TestChapter:
    def test_end_ms(self):
        assert Chapter("One", 1000, 500).end_ms == 1500

    def test_unlocked_by_default(self):
        assert Chapter("One", 0, 1).locked is False


class TestConversionConfig:
    def test_defaults(self):
        config = ConversionConfig(Path("in"), Path("out.m4b"))
        assert config.codec == AudioCodec.AAC
        assert config.chapters == ()
        assert config.options == ProcessingOptions()
        assert config.options.atomic_write is True

    def test_frozen(self):
        config = ConversionConfig(Path("in"), Path("out.m4b"))
        with pytest.raises(AttributeError):
            config.bitrate = "64k"
