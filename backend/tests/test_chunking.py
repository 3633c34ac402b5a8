from __future__ import annotations

import pytest

from repochat.ingest import chunking
from repochat.ingest.chunking import RecursiveTextSplitter
from repochat.ingest.loaders import Document


def _source_file(functions: int) -> str:
    blocks = []
    for idx in range(functions):
        body = "\n".join(f"    value_{idx}_{line} = compute({line}, {idx})" for line in range(6))
        blocks.append(f"def function_{idx}():\n{body}\n    return value_{idx}_0")
    return "\n\n".join(blocks)


def test_short_text_is_a_single_chunk() -> None:
    splitter = RecursiveTextSplitter()
    assert splitter.split_text("print('hello')\n") == ["print('hello')"]


def test_blank_text_produces_no_chunks() -> None:
    splitter = RecursiveTextSplitter()
    assert splitter.split_text("  \n\n \n") == []


def test_chunks_respect_size_limit() -> None:
    text = _source_file(40)
    chunks = RecursiveTextSplitter(chunk_size=1000, chunk_overlap=200).split_text(text)

    assert len(chunks) > 1
    assert all(len(chunk) <= 1000 for chunk in chunks)


def test_unbroken_run_is_split_by_characters() -> None:
    text = "x" * 2500
    chunks = RecursiveTextSplitter(chunk_size=1000, chunk_overlap=200).split_text(text)

    assert all(len(chunk) <= 1000 for chunk in chunks)
    assert chunks[0] == "x" * 1000
    assert len(chunks) == 3


def test_consecutive_chunks_overlap() -> None:
    words = " ".join(f"word{idx:04d}" for idx in range(600))
    chunks = RecursiveTextSplitter(chunk_size=100, chunk_overlap=30).split_text(words)

    assert len(chunks) > 2
    for previous, current in zip(chunks, chunks[1:]):
        first_word = current.split(" ")[0]
        assert first_word in previous


def test_paragraphs_are_preferred_boundaries() -> None:
    first = "a" * 60
    second = "b" * 60
    chunks = RecursiveTextSplitter(chunk_size=100, chunk_overlap=0).split_text(f"{first}\n\n{second}")

    assert chunks == [first, second]


def test_splitting_is_deterministic() -> None:
    documents = [Document(path="pkg/module.py", text=_source_file(25))]

    first = chunking.split(documents)
    second = chunking.split(documents)

    assert first == second
    assert [chunk.sequence_index for chunk in first] == list(range(len(first)))


def test_split_documents_tags_source_and_restarts_sequence() -> None:
    documents = [
        Document(path="a.py", text=_source_file(20)),
        Document(path="b.md", text="# Title\n\nShort readme."),
    ]

    chunks = chunking.split(documents)

    a_chunks = [chunk for chunk in chunks if chunk.source_path == "a.py"]
    b_chunks = [chunk for chunk in chunks if chunk.source_path == "b.md"]
    assert len(a_chunks) > 1
    assert [chunk.sequence_index for chunk in b_chunks] == [0]
    assert b_chunks[0].text == "# Title\n\nShort readme."


def test_rejects_overlap_not_smaller_than_size() -> None:
    with pytest.raises(ValueError):
        RecursiveTextSplitter(chunk_size=100, chunk_overlap=100)
