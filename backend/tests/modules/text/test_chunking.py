"""Tests for sentence-aware chunking."""

import pytest

from helpdesk_rag.modules.text import chunk, normalize
from helpdesk_rag.modules.text.chunking import find_sentence_boundary


def test_short_text_is_single_chunk():
    assert list(chunk("Printer on floor 3 is jammed again", 1000, 200)) == ["printer on floor 3 is jammed again"]


def test_text_of_exactly_chunk_size_is_single_chunk():
    text = "b" * 1000
    assert list(chunk(text, 1000, 200)) == [text]


@pytest.mark.parametrize("raw", [None, "", "   ", "<br/>"])
def test_empty_input_gives_no_chunks(raw):
    assert list(chunk(raw, 1000, 200)) == []


def test_long_text_without_terminators_uses_fixed_windows():
    text = "abcdefghij" * 250

    chunks = list(chunk(text, 1000, 200))

    assert len(chunks) == 3
    assert all(len(piece) <= 1000 for piece in chunks)
    assert chunks[0] == text[0:1000]
    assert chunks[1] == text[800:1800]
    assert chunks[2] == text[1600:2500]
    assert chunks[0][-200:] == chunks[1][:200]


def test_chunks_cover_the_whole_normalized_text():
    text = "abcdefghij" * 250

    chunks = list(chunk(text, 1000, 200))

    assert chunks[0] + chunks[1][200:] + chunks[2][200:] == text


def test_chunks_are_never_empty_or_padded():
    raw = ("Restart the spooler service. " * 60) + "Then print a test page"

    chunks = list(chunk(raw, 300, 50))

    assert chunks
    assert all(piece and piece == piece.strip() for piece in chunks)
    assert all(len(piece) <= 300 for piece in chunks)


def test_window_is_cut_after_last_sentence_terminator():
    raw = "Alpha beta gamma. Delta epsilon zeta. Eta theta iota."

    chunks = list(chunk(raw, 30, 5))

    assert chunks[0] == "alpha beta gamma."
    assert chunks[-1].endswith("iota")
    assert all(len(piece) <= 30 for piece in chunks)


def test_every_normalized_word_survives_chunking():
    raw = " ".join(f"Word{i}." for i in range(400))
    normalized = normalize(raw)

    chunks = list(chunk(raw, 200, 40))

    joined = " ".join(chunks)
    for word in normalized.split():
        assert word.rstrip(".") in joined


def test_returns_a_one_shot_iterator():
    result = chunk("Some long enough content here", 1000, 200)

    assert iter(result) is result
    assert list(result) == ["some long enough content here"]
    assert list(result) == []


def test_overlap_larger_than_window_still_advances():
    chunks = list(chunk("x" * 50, 10, 20))

    assert len(chunks) == 5
    assert "".join(chunks) == "x" * 50


@pytest.mark.parametrize("chunk_size, overlap", [(0, 0), (-5, 0), (10, -1)])
def test_invalid_parameters_raise(chunk_size, overlap):
    with pytest.raises(ValueError):
        chunk("anything at all", chunk_size, overlap)


class TestFindSentenceBoundary:
    def test_skips_whitespace_after_terminator(self):
        assert find_sentence_boundary("one. two", 0, 8) == 5

    def test_returns_last_terminator_in_window(self):
        assert find_sentence_boundary("a! b? c", 0, 7) == 6

    def test_no_terminator(self):
        assert find_sentence_boundary("no terminator here", 0, 18) == -1

    def test_ignores_terminators_outside_window(self):
        assert find_sentence_boundary("end. start here", 5, 15) == -1
