"""Sparse document-term count matrix with labeled dimensions."""

import csv
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple, Union

import numpy as np
import scipy.sparse as sp

logger = logging.getLogger(__name__)

LABELS_SUFFIX = ".labels.json"
CSV_FIELDS = ["doc", "term", "count"]
MATRIX_SUFFIXES = (".npz", ".csv")


@dataclass(frozen=True, eq=False)
class TermDocMatrix:
    """
    Immutable document-term matrix.

    Rows are documents, columns are terms. Every slicing method returns a new
    matrix whose labels stay aligned with the rows and columns of ``counts``.

    Attributes:
        counts: CSR matrix of non-negative integer counts, shape (docs, terms)
        docs: Document labels, one per row. May contain duplicates
        terms: Term labels, one per column. Must be unique
    """

    counts: sp.csr_matrix
    docs: Tuple[str, ...]
    terms: Tuple[str, ...]

    def __post_init__(self):
        counts = sp.csr_matrix(self.counts, dtype=np.int64, copy=True)
        counts.eliminate_zeros()
        docs = tuple(str(doc) for doc in self.docs)
        terms = tuple(self.terms)

        if counts.shape != (len(docs), len(terms)):
            raise ValueError(
                f"Matrix shape {counts.shape} does not match "
                f"{len(docs)} docs x {len(terms)} terms"
            )
        if len(set(terms)) != len(terms):
            raise ValueError("Term labels must be unique")
        if counts.nnz and counts.data.min() < 0:
            raise ValueError("Counts must be non-negative")

        object.__setattr__(self, "counts", counts)
        object.__setattr__(self, "docs", docs)
        object.__setattr__(self, "terms", terms)

    @classmethod
    def from_dense(
        cls, rows: Sequence[Sequence[int]], docs: Sequence, terms: Sequence[str]
    ) -> "TermDocMatrix":
        """Build a matrix from a dense docs x terms nested sequence."""
        array = np.asarray(rows, dtype=np.int64).reshape(len(docs), len(terms))
        return cls(sp.csr_matrix(array), tuple(docs), tuple(terms))

    @property
    def shape(self) -> Tuple[int, int]:
        return self.counts.shape

    @property
    def n_docs(self) -> int:
        return len(self.docs)

    @property
    def n_terms(self) -> int:
        return len(self.terms)

    def __repr__(self) -> str:
        return f"TermDocMatrix(docs={self.n_docs}, terms={self.n_terms}, nnz={self.counts.nnz})"

    def to_dense(self) -> np.ndarray:
        return self.counts.toarray()

    def term_index(self, term: str) -> int:
        """Column index of a term. Raises KeyError if the term is unknown."""
        try:
            return self.terms.index(term)
        except ValueError:
            raise KeyError(term) from None

    def term_column(self, term: str) -> np.ndarray:
        """Counts of a single term over all documents."""
        return self.counts[:, self.term_index(term)].toarray().ravel()

    def doc_frequency(self) -> np.ndarray:
        """Number of documents each term occurs in."""
        return np.asarray((self.counts > 0).sum(axis=0)).ravel()

    def select_docs(self, indices: Iterable[int]) -> "TermDocMatrix":
        """Return a matrix restricted to the given row indices, in that order."""
        idx = np.fromiter(indices, dtype=np.intp)
        return TermDocMatrix(
            self.counts[idx, :],
            tuple(self.docs[i] for i in idx),
            self.terms,
        )

    def select_terms(self, indices: Iterable[int]) -> "TermDocMatrix":
        """Return a matrix restricted to the given column indices, in that order."""
        idx = np.fromiter(indices, dtype=np.intp)
        return TermDocMatrix(
            self.counts[:, idx],
            self.docs,
            tuple(self.terms[i] for i in idx),
        )

    def keep_docs(self, mask: Sequence[bool]) -> "TermDocMatrix":
        """Keep rows where ``mask`` is true."""
        mask = np.asarray(mask, dtype=bool)
        if mask.shape != (self.n_docs,):
            raise ValueError(f"Doc mask has shape {mask.shape}, expected ({self.n_docs},)")
        return self.select_docs(np.flatnonzero(mask))

    def keep_terms(self, mask: Sequence[bool]) -> "TermDocMatrix":
        """Keep columns where ``mask`` is true."""
        mask = np.asarray(mask, dtype=bool)
        if mask.shape != (self.n_terms,):
            raise ValueError(f"Term mask has shape {mask.shape}, expected ({self.n_terms},)")
        return self.select_terms(np.flatnonzero(mask))


def remove_sparse_terms(matrix: TermDocMatrix, sparse: float) -> TermDocMatrix:
    """
    Drop terms that occur in too few documents.

    A term is kept when the number of documents it occurs in is strictly
    greater than ``n_docs * (1 - sparse)``. Values of ``sparse`` close to 1
    keep almost everything, values close to 0 keep only terms present in
    nearly every document.

    Args:
        matrix: Matrix to reduce
        sparse: Maximal allowed sparsity in [0, 1]

    Returns:
        TermDocMatrix with the sparse terms removed
    """
    if not 0 <= sparse <= 1:
        raise ValueError(f"sparse must be within [0, 1], got {sparse}")

    threshold = matrix.n_docs * (1 - sparse)
    return matrix.keep_terms(matrix.doc_frequency() > threshold)


def labels_path(path: Path) -> Path:
    path = Path(path)
    return path.with_name(path.stem + LABELS_SUFFIX)


def save_npz(matrix: TermDocMatrix, path: Path) -> None:
    """Save counts with ``scipy.sparse.save_npz`` plus a JSON labels sidecar."""
    path = Path(path)
    sp.save_npz(path, matrix.counts)
    with labels_path(path).open("w", encoding="utf-8") as f:
        json.dump({"docs": list(matrix.docs), "terms": list(matrix.terms)}, f, ensure_ascii=False)


def load_npz(path: Path) -> TermDocMatrix:
    path = Path(path)
    counts = sp.load_npz(path)
    with labels_path(path).open("r", encoding="utf-8") as f:
        labels = json.load(f)
    return TermDocMatrix(counts, tuple(labels["docs"]), tuple(labels["terms"]))


def read_csv(path: Path) -> TermDocMatrix:
    """
    Read a long-format ``doc,term,count`` CSV file.

    Documents and terms are numbered in first-seen order. Repeated
    (doc, term) rows are summed.
    """
    doc_ids = {}
    term_ids = {}
    rows: List[int] = []
    cols: List[int] = []
    data: List[int] = []

    with Path(path).open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        missing = set(CSV_FIELDS) - set(reader.fieldnames or [])
        if missing:
            raise ValueError(f"{path}: missing CSV columns {sorted(missing)}")

        for row in reader:
            doc = row["doc"].strip()
            term = row["term"].strip()
            if not doc or not term:  # Skip empty lines
                continue
            rows.append(doc_ids.setdefault(doc, len(doc_ids)))
            cols.append(term_ids.setdefault(term, len(term_ids)))
            data.append(int(row["count"]))

    counts = sp.coo_matrix(
        (data, (rows, cols)), shape=(len(doc_ids), len(term_ids)), dtype=np.int64
    ).tocsr()
    return TermDocMatrix(counts, tuple(doc_ids), tuple(term_ids))


def write_csv(matrix: TermDocMatrix, path: Path) -> None:
    coo = matrix.counts.tocoo()
    order = np.lexsort((coo.col, coo.row))
    with Path(path).open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for k in order:
            writer.writerow(
                {
                    "doc": matrix.docs[coo.row[k]],
                    "term": matrix.terms[coo.col[k]],
                    "count": int(coo.data[k]),
                }
            )


def check_matrix_path(path: Union[str, Path]) -> Path:
    """Return ``path`` as a Path, or raise ValueError for an unsupported suffix."""
    path = Path(path)
    if path.suffix not in MATRIX_SUFFIXES:
        raise ValueError(
            f"Unsupported matrix format: {path.suffix or path.name} "
            f"(expected one of {', '.join(MATRIX_SUFFIXES)})"
        )
    return path


def load_matrix(path: Union[str, Path]) -> TermDocMatrix:
    """Load a matrix from ``.npz`` (with labels sidecar) or long ``.csv``."""
    path = check_matrix_path(path)
    if path.suffix == ".npz":
        matrix = load_npz(path)
    else:
        matrix = read_csv(path)

    logger.info(f"Loaded {matrix!r} from {path}")
    return matrix


def save_matrix(matrix: TermDocMatrix, path: Union[str, Path]) -> None:
    path = check_matrix_path(path)
    if path.suffix == ".npz":
        save_npz(matrix, path)
    else:
        write_csv(matrix, path)

    logger.info(f"Saved {matrix!r} to {path}")
