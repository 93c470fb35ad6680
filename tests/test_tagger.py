from typing import Callable

import pytest
import spacy

import tagger as tagger_module
from dtm import TermDocMatrix
from nouns import FilterOptions, dtm_of_nouns, keep_nouns, tag_chunk
from tagger import MAX_LENGTH, SpacyTagger, get_pos_fingerprint

CONTRACTED = ["forest", "dont", "10km", "river", "gonna", "isnt"]


@pytest.fixture(scope="module")
def nlp() -> Callable:
    """Fixture providing spaCy model."""
    try:
        return spacy.load("en_core_web_sm", disable=["ner", "lemmatizer"])
    except OSError:
        pytest.skip("en_core_web_sm is not installed")


@pytest.fixture(scope="module")
def tagger(nlp: Callable) -> SpacyTagger:
    return SpacyTagger(nlp=nlp)


@pytest.fixture
def blank_nlp() -> spacy.language.Language:
    """English tokenizer and sentencizer, no statistical components."""
    nlp = spacy.blank("en")
    nlp.add_pipe("sentencizer")
    return nlp


class TestSpacyTagger:
    def test_one_tag_per_token(self, tagger: SpacyTagger):
        """Tokens come back in order with Penn Treebank tags."""
        tagged = tagger("The dog runs quickly")

        assert [token for token, _ in tagged] == ["The", "dog", "runs", "quickly"]
        assert get_pos_fingerprint(tagged) == "DT_NN_VBZ_RB_"

    def test_several_sentences(self, tagger: SpacyTagger):
        """Tokens of every sentence are returned, split on whitespace only."""
        tagged = tagger("The cat sleeps. The dog barks.")
        assert [token for token, _ in tagged] == [
            "The", "cat", "sleeps.", "The", "dog", "barks.",
        ]

    def test_empty_text(self, tagger: SpacyTagger):
        assert tagger("") == []


class TestWhitespaceTokens:
    def test_tokenizer_would_split(self, blank_nlp: spacy.language.Language):
        """spaCy's own tokenizer breaks these words into several tokens."""
        assert len(blank_nlp("dont")) == 2
        assert len(blank_nlp("10km")) == 2

    def test_one_token_per_word(self, blank_nlp: spacy.language.Language):
        tagged = SpacyTagger(nlp=blank_nlp)(" ".join(CONTRACTED))
        assert [token for token, _ in tagged] == CONTRACTED

    def test_tag_chunk_keeps_alignment(self, blank_nlp: spacy.language.Language):
        tagged = tag_chunk(CONTRACTED, SpacyTagger(nlp=blank_nlp))
        assert [term for term, _ in tagged] == CONTRACTED

    def test_pipeline_completes(self, blank_nlp: spacy.language.Language):
        """The full pipeline tags a corpus with contracted words without failing."""
        m = TermDocMatrix.from_dense(
            [[1, 2, 1, 1, 0, 1], [0, 1, 1, 0, 3, 1]], docs=["d1", "d2"], terms=CONTRACTED
        )
        result = dtm_of_nouns(
            m,
            FilterOptions(pos_tag=True),
            stopwords=lambda: frozenset(),
            tagger=SpacyTagger(nlp=blank_nlp),
        )

        # No tagger component, so every tag is empty and nothing is a noun.
        assert result.report[-2].terms == len(CONTRACTED)
        assert result.matrix.terms == ()
        assert result.matrix.docs == ("d1", "d2")

    def test_model_loading_raises_max_length(self, monkeypatch):
        loaded = []

        def fake_load(name, disable):
            loaded.append((name, disable))
            return spacy.blank("en")

        monkeypatch.setattr(tagger_module.spacy, "load", fake_load)
        spacy_tagger = SpacyTagger("en_core_web_sm")

        assert loaded == [("en_core_web_sm", ["ner", "lemmatizer"])]
        assert spacy_tagger.nlp.max_length == MAX_LENGTH


class TestSpacyChunkTagging:
    def test_dog_runs_quickly(self, tagger: SpacyTagger):
        """A three-term chunk gives three tags; only the NN term survives."""
        tagged = tag_chunk(["dog", "runs", "quickly"], tagger)
        assert [term for term, _ in tagged] == ["dog", "runs", "quickly"]

        m = TermDocMatrix.from_dense([[1, 1, 1]], docs=["d1"], terms=["dog", "runs", "quickly"])
        assert keep_nouns(m, tagger).terms == ("dog",)

    def test_result_is_subsequence(self, tagger: SpacyTagger):
        terms = ["house", "quickly", "garden", "green", "table"]
        m = TermDocMatrix.from_dense([[1] * len(terms)], docs=["d1"], terms=terms)
        kept = list(keep_nouns(m, tagger, chunk_size=2).terms)

        assert kept == [term for term in terms if term in kept]
