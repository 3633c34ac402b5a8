"""Chunking utilities."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from .loaders import Document

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200
DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", " ", "")


@dataclass(frozen=True, slots=True)
class Chunk:
    """Container for a chunk of text and the file it was cut from."""

    source_path: str
    text: str
    sequence_index: int


class RecursiveTextSplitter:
    """Split text on progressively finer boundaries until pieces fit.

    Paragraph breaks are tried first, then line breaks, spaces and finally
    single characters. Neighbouring pieces are merged back together up to
    ``chunk_size`` characters, carrying up to ``chunk_overlap`` characters of
    trailing context into the next chunk. Separators stay attached to the
    start of the piece that follows them.
    """

    def __init__(
        self,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
        separators: Sequence[str] = DEFAULT_SEPARATORS,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if chunk_overlap < 0 or chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.separators = tuple(separators)

    def split_text(self, text: str) -> List[str]:
        return self._split(text, self.separators)

    def split_documents(self, documents: Iterable[Document]) -> List[Chunk]:
        chunks: List[Chunk] = []
        for document in documents:
            for index, piece in enumerate(self.split_text(document.text)):
                chunks.append(Chunk(source_path=document.path, text=piece, sequence_index=index))
        return chunks

    def _split(self, text: str, separators: Sequence[str]) -> List[str]:
        separator = separators[-1]
        remaining: Sequence[str] = ()
        for position, candidate in enumerate(separators):
            if candidate == "":
                separator = candidate
                break
            if candidate in text:
                separator = candidate
                remaining = separators[position + 1 :]
                break

        results: List[str] = []
        pending: List[str] = []
        for piece in _split_keeping_separator(text, separator):
            if len(piece) < self.chunk_size:
                pending.append(piece)
                continue
            if pending:
                results.extend(self._merge(pending))
                pending = []
            if remaining:
                results.extend(self._split(piece, remaining))
            else:
                results.append(piece)
        if pending:
            results.extend(self._merge(pending))
        return results

    def _merge(self, pieces: Sequence[str]) -> List[str]:
        merged: List[str] = []
        window: List[str] = []
        total = 0
        for piece in pieces:
            length = len(piece)
            if total + length > self.chunk_size:
                if total > self.chunk_size:
                    logger.debug("Created a chunk of size %s, above limit %s", total, self.chunk_size)
                if window:
                    joined = _join(window)
                    if joined is not None:
                        merged.append(joined)
                    # Drop leading pieces until the window fits inside the overlap.
                    while total > self.chunk_overlap or (total + length > self.chunk_size and total > 0):
                        total -= len(window[0])
                        window = window[1:]
            window.append(piece)
            total += length
        joined = _join(window)
        if joined is not None:
            merged.append(joined)
        return merged


def _split_keeping_separator(text: str, separator: str) -> List[str]:
    if not separator:
        return list(text)
    parts = re.split(f"({re.escape(separator)})", text)
    pieces = [parts[0]]
    pieces.extend(parts[i] + parts[i + 1] for i in range(1, len(parts) - 1, 2))
    return [piece for piece in pieces if piece]


def _join(pieces: Sequence[str]) -> str | None:
    text = "".join(pieces).strip()
    return text or None


def split(
    documents: Iterable[Document],
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> List[Chunk]:
    """Split documents into overlapping chunks tagged with their source path."""

    splitter = RecursiveTextSplitter(chunk_size=chunk_size, chunk_overlap=chunk_overlap)
    return splitter.split_documents(documents)
