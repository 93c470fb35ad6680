import json

import pytest

from dtm import load_matrix
from runner import main

WORDCOUNTS = """doc,term,count
10.2307/1,the,4
10.2307/1,forest,2
10.2307/1,river,1
10.2307/1,jstor,1
10.2307/2,the,2
10.2307/2,ox,1
10.2307/2,seeee,3
10.2307/3,river,2
10.2307/3,café,1
"""


@pytest.fixture
def wordcounts(tmp_path):
    path = tmp_path / "wordcounts.csv"
    path.write_text(WORDCOUNTS, encoding="utf-8")
    return path


class TestRunner:
    def test_csv_to_csv(self, wordcounts, tmp_path, capsys):
        output = tmp_path / "out" / "nouns.csv"
        assert main([str(wordcounts), str(output), "--no-pos-tag"]) == 0

        m = load_matrix(output)
        assert set(m.terms) == {"forest", "river", "jstor"}
        assert "Stage" in capsys.readouterr().out

    def test_npz_output_and_terms(self, wordcounts, tmp_path):
        output = tmp_path / "nouns.npz"
        terms_out = tmp_path / "terms.txt"
        code = main(
            [str(wordcounts), str(output), "--no-pos-tag", "--quiet", "--terms-out", str(terms_out)]
        )

        assert code == 0
        labels = json.loads((tmp_path / "nouns.labels.json").read_text(encoding="utf-8"))
        assert labels["docs"] == ["10.2307/1", "10.2307/2", "10.2307/3"]
        assert terms_out.read_text(encoding="utf-8").split() == labels["terms"]

    def test_extra_stopwords(self, wordcounts, tmp_path):
        extra = tmp_path / "extra.txt"
        extra.write_text("jstor\n", encoding="utf-8")
        output = tmp_path / "nouns.csv"

        code = main(
            [str(wordcounts), str(output), "--no-pos-tag", "--quiet", "--extra-stopwords", str(extra)]
        )

        assert code == 0
        assert "jstor" not in load_matrix(output).terms

    def test_word_subset(self, wordcounts, tmp_path):
        output = tmp_path / "nouns.csv"
        code = main([str(wordcounts), str(output), "--no-pos-tag", "--quiet", "--word", "river"])

        assert code == 0
        assert set(load_matrix(output).docs) == {"10.2307/1", "10.2307/3"}

    def test_unknown_word(self, wordcounts, tmp_path, capsys):
        output = tmp_path / "nouns.csv"
        code = main([str(wordcounts), str(output), "--no-pos-tag", "--word", "owl"])

        assert code == 1
        assert "owl" in capsys.readouterr().err
        assert not output.exists()

    def test_invalid_sparse(self, wordcounts, tmp_path):
        assert main([str(wordcounts), str(tmp_path / "x.csv"), "--sparse", "2"]) == 2

    def test_bad_output_suffix(self, wordcounts, tmp_path, capsys):
        """An unsupported output format is rejected before any filtering."""
        output = tmp_path / "nouns.txt"
        code = main([str(wordcounts), str(output), "--no-pos-tag", "--quiet"])

        assert code == 2
        assert "Unsupported matrix format: .txt" in capsys.readouterr().err
        assert not output.exists()

    def test_missing_input(self, tmp_path, capsys):
        code = main([str(tmp_path / "nope.csv"), str(tmp_path / "out.csv"), "--no-pos-tag"])

        assert code == 1
        assert "Cannot read input" in capsys.readouterr().err

    def test_input_without_count_columns(self, tmp_path, capsys):
        path = tmp_path / "bad.csv"
        path.write_text("document,word\nd1,cat\n", encoding="utf-8")
        code = main([str(path), str(tmp_path / "out.csv"), "--no-pos-tag", "--quiet"])

        assert code == 1
        assert "missing CSV columns" in capsys.readouterr().err
