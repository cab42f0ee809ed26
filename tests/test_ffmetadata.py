"""Tests for ffmetadata.py -- FFMETADATA1 generation and parsing."""

import pytest

from lectern.ffmetadata import (
    escape_value,
    generate_chapter_metadata,
    metadata_args,
    parse_ffmetadata,
    unescape_value,
)
from lectern.models import BookMetadata, Chapter


class TestEscapeValue:
    def test_equals_and_newline(self):
        assert escape_value("a=b\nc") == "a\\=b\\nc"

    def test_other_characters_untouched(self):
        assert escape_value("Semi;colon #hash [x]") == "Semi;colon #hash [x]"

    def test_unescape(self):
        assert unescape_value("a\\=b\\nc") == "a=b\nc"

    def test_unescape_keeps_unknown_backslash(self):
        assert unescape_value("C:\\books\\Dune") == "C:\\books\\Dune"
        assert unescape_value("a\\;b\\#c\\\\d") == "a;b#c\\d"

    def test_backslash_title_round_trip(self):
        chapters = [Chapter("C:\\books\\Dune", 0, 1000)]
        _, parsed = parse_ffmetadata(generate_chapter_metadata(BookMetadata(), chapters))
        assert parsed[0].title == "C:\\books\\Dune"

    def test_literal_backslash_n_reads_as_newline(self):
        # Backslashes are written raw, so "\n" in a title is ambiguous
        chapters = [Chapter("C:\\news", 0, 1000)]
        _, parsed = parse_ffmetadata(generate_chapter_metadata(BookMetadata(), chapters))
        assert parsed[0].title == "C:\news"


class TestGenerateChapterMetadata:
    def test_full_document(self):
        book = BookMetadata(title="Dune", author="Frank Herbert", year="1965")
        chapters = [Chapter("Book One", 0, 600000), Chapter("Book Two", 600000, 450000)]
        text = generate_chapter_metadata(book, chapters)
        assert text == (
            ";FFMETADATA1\n"
            "title=Dune\n"
            "artist=Frank Herbert\n"
            "date=1965\n"
            "\n"
            "[CHAPTER]\n"
            "TIMEBASE=1/1000\n"
            "START=0\n"
            "END=600000\n"
            "title=Book One\n"
            "\n"
            "[CHAPTER]\n"
            "TIMEBASE=1/1000\n"
            "START=600000\n"
            "END=1050000\n"
            "title=Book Two\n"
            "\n"
        )

    def test_tag_order_and_keys(self):
        book = BookMetadata(
            title="T",
            author="A",
            series="S",
            narrator="N",
            genre="G",
            publisher="P",
            year="2020",
            description="D",
            isbn="I",
            asin="B0",
            language="en",
        )
        lines = generate_chapter_metadata(book, []).splitlines()
        keys = [line.split("=", 1)[0] for line in lines[1:] if line]
        assert keys == [
            "title", "artist", "album", "genre", "date", "publisher",
            "comment", "narrator", "isbn", "asin", "language",
        ]

    def test_no_unescaped_separators_in_values(self):
        book = BookMetadata(title="E=mc2", description="line one\nline two")
        chapters = [Chapter("A=B\nC", 0, 1000)]
        text = generate_chapter_metadata(book, chapters)
        for line in text.splitlines():
            if "=" not in line:
                continue
            value = line.split("=", 1)[1]
            assert "\n" not in value
            assert value.replace("\\=", "").count("=") == 0

    def test_parse_recovers_escaped_values(self):
        book = BookMetadata(title="E=mc2", author="Someone")
        chapters = [Chapter("Part=1\nBegins", 0, 1500), Chapter("Two", 1500, 500)]
        tags, parsed = parse_ffmetadata(generate_chapter_metadata(book, chapters))
        assert tags == {"title": "E=mc2", "artist": "Someone"}
        assert parsed == chapters


class TestMetadataArgs:
    def test_pairs(self):
        book = BookMetadata(title="Dune", author="Frank Herbert", narrator="Scott Brick")
        assert metadata_args(book) == [
            "-metadata", "title=Dune",
            "-metadata", "artist=Frank Herbert",
            "-metadata", "narrator=Scott Brick",
        ]

    def test_empty_book(self):
        assert metadata_args(BookMetadata()) == []


class TestParseFfmetadata:
    def test_timebase_conversion_and_comments(self):
        text = (
            ";FFMETADATA1\n"
            "; a comment\n"
            "title=Book\n"
            "[CHAPTER]\n"
            "TIMEBASE=1/44100\n"
            "START=44100\n"
            "END=88200\n"
            "title=One\n"
            "[STREAM]\n"
            "title=ignored\n"
        )
        tags, chapters = parse_ffmetadata(text)
        assert tags == {"title": "Book"}
        assert chapters == [Chapter("One", 1000, 1000)]

    def test_missing_header(self):
        with pytest.raises(ValueError):
            parse_ffmetadata("title=x\n")
