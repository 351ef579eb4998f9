"""
Append-only positional inverted index.

The index is built once per corpus load by a single writer and is read-only
afterwards. Lookups never mutate shared state, so concurrent searches against a
fully built index need no locking.

Usage:
    from news_ranking.index import build_index

    index = build_index([("0", "cats are great pets"), ("1", "dogs are loyal")])
    index.get_document_frequency("are")  # 2
"""

from __future__ import annotations

import logging
from collections.abc import Hashable, Iterable
from dataclasses import dataclass

from tqdm import tqdm

from news_ranking.tokenizer import tokenize

logger = logging.getLogger(__name__)

DocId = Hashable


@dataclass(frozen=True)
class Posting:
    """Occurrences of one term in one document."""

    doc_id: DocId
    positions: tuple[int, ...]

    @property
    def tf(self) -> int:
        """Term frequency of the term in the document."""
        return len(self.positions)


class InvertedIndex:
    """
    Term -> postings mapping with per-document lengths.

    Attributes:
        document_count (int): Number of documents added so far.

    Adding the same document id twice is not detected; callers must not do it,
    otherwise document frequencies and lengths become inconsistent.
    """

    def __init__(self) -> None:
        self._postings: dict[str, list[Posting]] = {}
        self._doc_lengths: dict[DocId, int] = {}
        self.document_count = 0

    def __len__(self) -> int:
        return self.document_count

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._doc_lengths

    @property
    def vocabulary_size(self) -> int:
        return len(self._postings)

    def add_document(self, doc_id: DocId, text: str | None) -> None:
        """Tokenize `text` and merge one posting per distinct term into the index."""
        tokens = tokenize(text)

        positions: dict[str, list[int]] = {}
        for position, term in enumerate(tokens):
            positions.setdefault(term, []).append(position)

        for term, term_positions in positions.items():
            posting = Posting(doc_id, tuple(term_positions))
            self._postings.setdefault(term, []).append(posting)

        self._doc_lengths[doc_id] = len(tokens)
        self.document_count += 1

    def get_postings(self, term: str) -> tuple[Posting, ...]:
        """Postings for `term` in document insertion order (empty if unseen)."""
        return tuple(self._postings.get(term, ()))

    def get_document_frequency(self, term: str) -> int:
        """Number of documents containing `term`."""
        return len(self._postings.get(term, ()))

    def get_document_length(self, doc_id: DocId) -> int:
        """Token count of a document, 0 if the id is unknown."""
        return self._doc_lengths.get(doc_id, 0)

    def get_document_count(self) -> int:
        return self.document_count


def build_index(
    documents: Iterable[tuple[DocId, str | None]],
    show_progress: bool = False,
) -> InvertedIndex:
    """
    Build a fresh index from `(doc_id, text)` pairs.

    Args:
        documents: Iterable of document ids and their text.
        show_progress: Display a tqdm progress bar while indexing.

    Returns:
        The populated index.
    """
    index = InvertedIndex()
    for doc_id, text in tqdm(documents, desc="Indexing", disable=not show_progress):
        index.add_document(doc_id, text)

    logger.info(
        "Built index: %d docs, %d unique terms",
        index.get_document_count(),
        index.vocabulary_size,
    )
    return index
