"""
Relevance Selector - Narrow a corpus to files matching an instruction.
"""

from typing import Iterable

from src.core.pipeline.scanner import FileRecord

STOP_WORDS = frozenset({
    "this",
    "that",
    "with",
    "from",
    "have",
    "will",
    "would",
    "could",
    "should",
})

MIN_KEYWORD_LENGTH = 4


def extract_keywords(instruction: str) -> set[str]:
    """Lower-cased whitespace tokens longer than three chars, minus stop words."""
    return {
        word
        for word in instruction.lower().split()
        if len(word) >= MIN_KEYWORD_LENGTH and word not in STOP_WORDS
    }


def select_relevant(corpus: Iterable[FileRecord], instruction: str) -> list[FileRecord]:
    """
    Return the files whose path or content contains any keyword.

    Matching is case-insensitive substring search over
    "<relative path> <content>", so short keywords over-include.
    Order follows the corpus. No keywords means no files; falling back
    to a default slice is the caller's job.
    """
    keywords = extract_keywords(instruction)
    if not keywords:
        return []

    relevant = []
    for record in corpus:
        haystack = f"{record.relative_path} {record.content}".lower()
        if any(keyword in haystack for keyword in keywords):
            relevant.append(record)
    return relevant
