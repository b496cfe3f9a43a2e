"""Small text helpers shared by the pipeline and providers."""

from __future__ import annotations


def word_count(text: str) -> int:
    """Count whitespace-separated words."""
    if not text:
        return 0
    return len(text.split())


def trim_non_alphanumeric(text: str) -> str:
    """Strip leading and trailing characters that are not letters or digits.

    Model output often arrives wrapped in quotes, markdown bullets or stray
    punctuation; interior punctuation is kept and trailing sentence
    punctuation is removed.
    """
    if not text:
        return ""
    start = 0
    end = len(text)
    while start < end and not text[start].isalnum():
        start += 1
    while end > start and not text[end - 1].isalnum():
        end -= 1
    return text[start:end]
