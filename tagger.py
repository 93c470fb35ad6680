"""Part-of-speech tagging of plain text with spaCy."""

import logging
from typing import Callable, List, Optional, Sequence, Tuple

import spacy
from spacy.tokens import Doc

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "en_core_web_sm"
MAX_LENGTH = 10_000_000

# (token text, Penn Treebank tag)
TaggedToken = Tuple[str, str]
Tagger = Callable[[str], List[TaggedToken]]


class SpacyTagger:
    """
    Callable tagger backed by a spaCy pipeline.

    The text is split on whitespace into words, so every word becomes exactly
    one token; spaCy's own tokenizer would split words such as ``dont`` or
    ``10km``. The pipeline components then run over the pre-tokenized
    ``Doc`` for sentence segmentation and POS tagging. Returns one
    ``(token, tag)`` pair per word, in document order. Tags are fine-grained
    Penn Treebank tags (``token.tag_``), so a singular common noun is ``NN``.
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        nlp: Optional[spacy.language.Language] = None,
        disable: Sequence[str] = ("ner", "lemmatizer"),
    ):
        """
        Args:
            model: Name or path of the spaCy model to load
            nlp: Already loaded pipeline. When given, ``model`` is ignored
            disable: Pipeline components not needed for tagging
        """
        if nlp is None:
            logger.info(f"Loading spaCy model {model}")
            nlp = spacy.load(model, disable=list(disable))
            nlp.max_length = MAX_LENGTH
        self.nlp = nlp

    def make_doc(self, text: str) -> Doc:
        doc = Doc(self.nlp.vocab, words=text.split())
        if not len(doc):
            return doc
        for _, proc in self.nlp.pipeline:
            doc = proc(doc)
        return doc

    def __call__(self, text: str) -> List[TaggedToken]:
        doc = self.make_doc(text)
        if not len(doc):
            return []
        if not doc.has_annotation("SENT_START"):
            return [(token.text, token.tag_) for token in doc]
        return [(token.text, token.tag_) for sent in doc.sents for token in sent]


def get_pos_fingerprint(tagged: Sequence[TaggedToken]) -> str:
    """Render tagged tokens as ``TAG_TAG_...``, handy for debugging chunk alignment."""
    return "".join(tag + "_" for _, tag in tagged)
