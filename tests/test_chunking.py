"""Tests for outbound response chunking."""

import pytest
from hypothesis import given, settings, strategies as st

from telecode.daemon.chunking import (
    EMPTY_RESPONSE_PLACEHOLDER,
    chunk_text,
    prepare_chunks,
)


@settings(max_examples=200)
@given(
    st.text(alphabet=st.sampled_from("ab \né\U0001f600"), max_size=400),
    st.integers(min_value=1, max_value=60),
)
def test_property_chunks_rebuild_trimmed_text(text, limit):
    chunks = chunk_text(text, limit)
    trimmed = text.strip()
    assert "".join(chunks) == trimmed
    assert all(chunk for chunk in chunks)
    assert all(len(chunk) <= limit for chunk in chunks)
    if trimmed and len(trimmed) <= limit:
        assert chunks == [trimmed]


@settings(max_examples=100)
@given(st.text(max_size=200), st.integers(min_value=1, max_value=50))
def test_property_prepare_chunks_never_empty(text, limit):
    chunks = prepare_chunks(text, limit)
    assert chunks
    if not text.strip():
        assert chunks == [EMPTY_RESPONSE_PLACEHOLDER]
    else:
        assert all(chunk.strip() for chunk in chunks)


def test_cut_prefers_space_in_last_quarter():
    limit = 100
    text = "x" * (limit - 1) + " " + "y" * 50
    chunks = chunk_text(text, limit)
    assert chunks[0] == "x" * (limit - 1)
    assert chunks[1] == " " + "y" * 50


def test_cut_prefers_newline():
    text = "a" * 90 + "\n" + "b" * 30
    chunks = chunk_text(text, 100)
    assert chunks == ["a" * 90, "\n" + "b" * 30]


def test_boundary_before_three_quarter_mark_is_ignored():
    text = "a" * 10 + " " + "b" * 200
    chunks = chunk_text(text, 100)
    assert len(chunks[0]) == 100
    assert "".join(chunks) == text


def test_hard_break_without_boundary():
    text = "z" * 250
    assert chunk_text(text, 100) == ["z" * 100, "z" * 100, "z" * 50]


def test_nine_thousand_chars_split_into_three_ordered_chunks():
    text = "A" * 9000
    chunks = chunk_text(text, 4000)
    assert len(chunks) == 3
    assert "".join(chunks) == text


def test_nine_thousand_chars_of_words_split_into_three_chunks():
    text = " ".join(["word"] * 1800)[:9000]
    chunks = chunk_text(text, 4000)
    assert len(chunks) == 3
    assert "".join(chunks) == text.strip()


def test_length_is_measured_in_code_points():
    text = "\U0001f600" * 10
    assert chunk_text(text, 10) == [text]
    assert chunk_text(text, 4) == ["\U0001f600" * 4, "\U0001f600" * 4, "\U0001f600" * 2]


def test_input_is_trimmed():
    assert chunk_text("  hello \n", 100) == ["hello"]


def test_empty_input_yields_placeholder():
    assert chunk_text("", 10) == []
    assert chunk_text(" \n\t", 10) == []
    assert prepare_chunks("", 10) == [EMPTY_RESPONSE_PLACEHOLDER]


def test_invalid_limit_rejected():
    with pytest.raises(ValueError):
        chunk_text("abc", 0)
