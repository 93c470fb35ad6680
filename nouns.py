"""
Reduce a document-term matrix to common nouns.

The pipeline optionally subsets documents by a term, deduplicates document
labels, drops sparse terms, removes stopwords and OCR noise (short terms,
runs of a repeated character, non-ASCII terms) and finally keeps only terms
that a POS tagger marks as singular common nouns (``NN``).
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Sequence, Tuple, Union

from tqdm import tqdm

from dtm import TermDocMatrix, remove_sparse_terms
from stopwords import StopwordSource, english_stopwords
from tagger import SpacyTagger, Tagger, TaggedToken, get_pos_fingerprint

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1000
MAX_SHORT_LENGTH = 3
NOUN_TAGS = ("NN",)

# Any character followed by at least two more copies of itself
REPEATED_CHAR_REGEX = re.compile(r"(.)\1{2,}")
NON_ALNUM_REGEX = re.compile(r"[^0-9A-Za-z]")

SparsityReducer = Callable[[TermDocMatrix, float], TermDocMatrix]


class NounFilterError(Exception):
    """Base class for errors raised while filtering a matrix."""


class TermNotFoundError(NounFilterError, KeyError):
    """The subsetting term is not in the matrix or occurs in no document."""

    def __str__(self):
        return Exception.__str__(self)


class TaggingError(NounFilterError, RuntimeError):
    """The POS tagger failed or its tokens do not line up with the terms."""


@dataclass
class FilterOptions:
    """
    Options of :func:`dtm_of_nouns`.

    Args:
        word: Term (or terms) to subset documents by. ``None`` keeps all documents
        sparse: Maximal allowed sparsity in [0, 1]. 1 means no reduction
        pos_tag: Whether to keep only nouns using the POS tagger
        chunk_size: Number of terms tagged at once
        max_short_length: Terms of this length or shorter are dropped
        noun_tags: POS tags of the terms to keep
    """

    word: Union[str, Sequence[str], None] = None
    sparse: float = 1.0
    pos_tag: bool = True
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_short_length: int = MAX_SHORT_LENGTH
    noun_tags: Tuple[str, ...] = NOUN_TAGS

    def __post_init__(self):
        if isinstance(self.word, str):
            self.word = (self.word,) if self.word else ()
        elif self.word is None:
            self.word = ()
        else:
            self.word = tuple(self.word)

        if not 0 <= self.sparse <= 1:
            raise ValueError(f"sparse must be within [0, 1], got {self.sparse}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {self.chunk_size}")
        self.noun_tags = tuple(self.noun_tags)


@dataclass
class StageReport:
    stage: str
    terms: int
    docs: int


@dataclass
class FilterResult:
    matrix: TermDocMatrix
    report: List[StageReport] = field(default_factory=list)

    def table(self) -> List[List]:
        return [[r.stage, r.terms, r.docs] for r in self.report]


def subset_documents(
    matrix: TermDocMatrix, word: Union[str, Sequence[str], None]
) -> TermDocMatrix:
    """
    Keep only documents in which ``word`` occurs at least once.

    All terms of the kept documents are retained. With several words a
    document is kept when it contains any of them. Without a word the matrix
    is returned unchanged.

    Raises:
        TermNotFoundError: If a word is not a term of the matrix, or if no
            document contains any of the words
    """
    if isinstance(word, str):
        word = [word] if word else []
    words = tuple(word or ())
    if not words:
        return matrix

    missing = [w for w in words if w not in matrix.terms]
    if missing:
        raise TermNotFoundError(f"Term(s) not in corpus: {', '.join(missing)}")

    columns = [matrix.term_index(w) for w in words]
    mask = (matrix.counts[:, columns] >= 1).toarray().any(axis=1)
    if not mask.any():
        raise TermNotFoundError(f"No document contains: {', '.join(words)}")

    return matrix.keep_docs(mask)


def deduplicate_documents(matrix: TermDocMatrix) -> TermDocMatrix:
    """Keep the first row of every document label, in original order."""
    seen = set()
    keep = []
    for i, doc in enumerate(matrix.docs):
        doc = str(doc)
        if doc not in seen:
            seen.add(doc)
            keep.append(i)

    if len(keep) == matrix.n_docs:
        return matrix
    logger.info(f"Dropped {matrix.n_docs - len(keep)} duplicate document label(s)")
    return matrix.select_docs(keep)


def reduce_sparsity(
    matrix: TermDocMatrix,
    sparse: float,
    reducer: SparsityReducer = remove_sparse_terms,
) -> TermDocMatrix:
    """Delegate to ``reducer`` unless ``sparse`` is 1."""
    if sparse == 1:
        return matrix
    return reducer(matrix, sparse)


def is_short(term: str, max_short_length: int = MAX_SHORT_LENGTH) -> bool:
    return len(term) <= max_short_length


def has_repeated_chars(term: str) -> bool:
    return bool(REPEATED_CHAR_REGEX.search(term))


def is_ascii(term: str) -> bool:
    """True if dropping every non-ASCII character leaves the term unchanged."""
    return term.encode("ascii", errors="ignore").decode("ascii") == term


def remove_stopwords(matrix: TermDocMatrix, stopwords: StopwordSource) -> TermDocMatrix:
    words = stopwords()
    return matrix.keep_terms([term not in words for term in matrix.terms])


def remove_short_terms(matrix: TermDocMatrix, max_short_length: int = MAX_SHORT_LENGTH) -> TermDocMatrix:
    return matrix.keep_terms([not is_short(term, max_short_length) for term in matrix.terms])


def remove_repeated_char_terms(matrix: TermDocMatrix) -> TermDocMatrix:
    return matrix.keep_terms([not has_repeated_chars(term) for term in matrix.terms])


def remove_non_ascii_terms(matrix: TermDocMatrix) -> TermDocMatrix:
    return matrix.keep_terms([is_ascii(term) for term in matrix.terms])


def clean_term(term: str) -> str:
    """Strip every non-alphanumeric character."""
    return NON_ALNUM_REGEX.sub("", term)


def chunks(items: Sequence, size: int) -> Iterator[Sequence]:
    """Split ``items`` into consecutive chunks of at most ``size`` items."""
    if size < 1:
        raise ValueError("size must be at least 1")
    for start in range(0, len(items), size):
        yield items[start : start + size]


def tag_chunk(terms: Sequence[str], tagger: Tagger) -> List[TaggedToken]:
    """
    Tag one chunk of terms as a single space separated pseudo-sentence.

    Args:
        terms: Terms of the chunk, in order
        tagger: Callable returning ``(token, tag)`` pairs for a text

    Returns:
        One ``(term, tag)`` pair per input term, in input order

    Raises:
        TaggingError: If the tagger raises, or returns a different number of
            tokens than there are terms
    """
    text = " ".join(clean_term(term) for term in terms)
    try:
        tagged = tagger(text)
    except Exception as e:
        raise TaggingError(f"POS tagger failed on a chunk of {len(terms)} terms") from e

    if len(tagged) != len(terms):
        raise TaggingError(
            f"Tagger returned {len(tagged)} tokens for {len(terms)} terms "
            f"(tags: {get_pos_fingerprint(tagged)[:200]})"
        )

    return [(term, tag) for term, (_, tag) in zip(terms, tagged)]


def tag_terms(
    terms: Sequence[str],
    tagger: Tagger,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    progress: bool = False,
) -> List[TaggedToken]:
    """Tag ``terms`` chunk by chunk and return ``(term, tag)`` pairs in order."""
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be at least 1, got {chunk_size}")

    tagged = []
    n_chunks = -(-len(terms) // chunk_size)
    for chunk in tqdm(
        chunks(terms, chunk_size), total=n_chunks, disable=not progress, desc="POS tagging"
    ):
        tagged.extend(tag_chunk(chunk, tagger))
    return tagged


def keep_nouns(
    matrix: TermDocMatrix,
    tagger: Tagger,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    noun_tags: Sequence[str] = NOUN_TAGS,
    progress: bool = False,
) -> TermDocMatrix:
    """Keep only terms whose POS tag is one of ``noun_tags`` (exact match)."""
    if not matrix.n_terms:
        return matrix

    tagged = tag_terms(matrix.terms, tagger, chunk_size=chunk_size, progress=progress)
    return matrix.keep_terms([tag in noun_tags for _, tag in tagged])


def dtm_of_nouns(
    matrix: TermDocMatrix,
    options: Optional[FilterOptions] = None,
    stopwords: StopwordSource = english_stopwords,
    tagger: Optional[Tagger] = None,
    reducer: SparsityReducer = remove_sparse_terms,
    progress: bool = False,
) -> FilterResult:
    """
    Run the full filtering pipeline on a document-term matrix.

    Stages, in order: subset by word, deduplicate documents, reduce sparsity,
    remove stopwords, remove short terms, remove terms with repeated
    characters, remove non-ASCII terms and, if ``options.pos_tag`` is set,
    keep only nouns.

    Args:
        matrix: Input matrix. It is never modified
        options: Filter options (default: ``FilterOptions()``)
        stopwords: Source of the stopword set
        tagger: POS tagger. Required when ``options.pos_tag`` is set; a
            :class:`tagger.SpacyTagger` is created if omitted
        reducer: Sparsity reducer used when ``options.sparse`` is below 1
        progress: Show a progress bar while tagging

    Returns:
        FilterResult with the reduced matrix and a per-stage size report
    """
    if options is None:
        options = FilterOptions()

    result = FilterResult(matrix=matrix)

    def record(stage: str, m: TermDocMatrix) -> TermDocMatrix:
        result.report.append(StageReport(stage, m.n_terms, m.n_docs))
        return m

    y = record("input", matrix)

    if options.word:
        logger.info(f"keeping only documents containing {', '.join(options.word)}...")
        y = record("subset", subset_documents(y, options.word))

    y = record("dedup", deduplicate_documents(y))

    if options.sparse != 1:
        logger.info(f"removing sparse terms (sparse={options.sparse})...")
        y = record("sparse", reduce_sparsity(y, options.sparse, reducer))

    logger.info("removing stopwords...")
    y = record("stopwords", remove_stopwords(y, stopwords))
    logger.info("done")

    logger.info(f"discarding words with <={options.max_short_length} characters (probably OCR errors)...")
    y = record("short", remove_short_terms(y, options.max_short_length))
    logger.info("done")

    logger.info("discarding words with >2 consecutive characters (probably OCR errors)...")
    y = record("repeated", remove_repeated_char_terms(y))
    logger.info("done")

    logger.info("discarding non-ASCII characters...")
    y = record("non-ascii", remove_non_ascii_terms(y))
    logger.info("done")

    if options.pos_tag:
        if tagger is None:
            tagger = SpacyTagger()

        logger.info("keeping only non-name nouns, this may take some time...")
        y = record(
            "nouns",
            keep_nouns(
                y,
                tagger,
                chunk_size=options.chunk_size,
                noun_tags=options.noun_tags,
                progress=progress,
            ),
        )
        logger.info("done")

    logger.info("all done")
    result.matrix = y
    return result
