"""Stopword sources for filtering out common, non-meaningful terms."""

from functools import lru_cache
from pathlib import Path
from typing import Callable, FrozenSet, Union

from spacy.lang.en.stop_words import STOP_WORDS

StopwordSource = Callable[[], FrozenSet[str]]


@lru_cache(maxsize=None)
def english_stopwords() -> FrozenSet[str]:
    """Default English stopword list (spaCy's, lowercased)."""
    return frozenset(word.lower() for word in STOP_WORDS)


def load_stopwords(path: Union[str, Path]) -> FrozenSet[str]:
    """
    Read a stopword list, one word per line.

    Empty lines and lines starting with ``#`` are skipped. Words are lowercased.

    Args:
        path: Path to the stopword file

    Returns:
        Frozen set of stopwords
    """
    words = set()
    with Path(path).open("r", encoding="utf-8") as f:
        for line in f:
            word = line.strip().lower()
            if word and not word.startswith("#"):  # Skip comments
                words.add(word)
    return frozenset(words)


def combine_stopwords(*sources: StopwordSource) -> StopwordSource:
    """Return a source yielding the union of all ``sources``."""

    def combined() -> FrozenSet[str]:
        words = set()
        for source in sources:
            words |= source()
        return frozenset(words)

    return combined
