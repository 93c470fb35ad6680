import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from tabulate import tabulate

from dtm import check_matrix_path, load_matrix, save_matrix
from nouns import DEFAULT_CHUNK_SIZE, FilterOptions, NounFilterError, dtm_of_nouns
from stopwords import combine_stopwords, english_stopwords, load_stopwords
from tagger import DEFAULT_MODEL, SpacyTagger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reduce a document-term matrix to common nouns."
    )
    parser.add_argument("input", type=Path, help="Input matrix (.npz with labels sidecar, or .csv).")
    parser.add_argument("output", type=Path, help="Output matrix (.npz or .csv).")
    parser.add_argument(
        "--word",
        type=str,
        nargs="+",
        default=None,
        help="Keep only documents containing at least one of these terms.",
    )
    parser.add_argument(
        "--sparse",
        type=float,
        default=1.0,
        help="Maximal allowed sparsity in [0, 1]. 1 disables sparse term removal.",
    )
    parser.add_argument("--no-pos-tag", default=False, action="store_true")
    parser.add_argument(
        "--model",
        type=str,
        default=DEFAULT_MODEL,
    )
    parser.add_argument(
        "--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE, help="Number of terms tagged at once."
    )
    parser.add_argument(
        "--extra-stopwords",
        type=Path,
        default=None,
        help="Additional stopwords, one per line.",
    )
    parser.add_argument(
        "--terms-out", type=Path, default=None, help="Write surviving terms here, one per line."
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", default=False, action="store_true")
    verbosity.add_argument("--quiet", default=False, action="store_true")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(name)s %(levelname)s: %(message)s")

    try:
        options = FilterOptions(
            word=args.word,
            sparse=args.sparse,
            pos_tag=not args.no_pos_tag,
            chunk_size=args.chunk_size,
        )
    except ValueError as e:
        print(f"Invalid options: {e}", file=sys.stderr)
        return 2

    try:
        check_matrix_path(args.input)
        check_matrix_path(args.output)
    except ValueError as e:
        print(f"Invalid path: {e}", file=sys.stderr)
        return 2

    try:
        matrix = load_matrix(args.input)
        stopwords = english_stopwords
        if args.extra_stopwords:
            extra = load_stopwords(args.extra_stopwords)
            stopwords = combine_stopwords(english_stopwords, lambda: extra)
    except (OSError, ValueError) as e:
        print(f"Cannot read input: {e}", file=sys.stderr)
        return 1

    tagger = SpacyTagger(args.model) if options.pos_tag else None

    try:
        result = dtm_of_nouns(
            matrix,
            options,
            stopwords=stopwords,
            tagger=tagger,
            progress=not args.quiet,
        )
    except NounFilterError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    args.output.parent.mkdir(parents=True, exist_ok=True)
    save_matrix(result.matrix, args.output)

    if args.terms_out:
        with open(args.terms_out, "w", encoding="utf-8") as f:
            for term in result.matrix.terms:
                f.write(term + "\n")

    if not args.quiet:
        print(tabulate(result.table(), headers=["Stage", "Terms", "Docs"], tablefmt="grid"))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
