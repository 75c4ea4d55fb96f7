from chaincrf.data_validation import validate_corpus
from chaincrf.types import END, Instance, TaggedToken


def test_validate_accepts_clean_corpus(toy_corpus):
    report = validate_corpus(toy_corpus)

    assert report == {"issue_count": 0, "error_count": 0, "issues": []}


def test_validate_flags_errors_and_warnings():
    corpus = [
        Instance.from_words(["the", "dog"], ["DT", None]),
        Instance(()),
        Instance((TaggedToken(("barks", "VBZ"), "V"), TaggedToken(("now",), END))),
    ]

    report = validate_corpus(corpus)

    issue_types = [issue["type"] for issue in report["issues"]]
    assert issue_types == [
        "missing_tag_error",
        "empty_sequence_warning",
        "column_count_warning",
        "sentinel_tag_error",
    ]
    assert report["issue_count"] == 4
    assert report["error_count"] == 2
    assert report["issues"][0]["instance"] == 0
    assert report["issues"][0]["idx"] == 1


def test_untagged_corpus_may_omit_tags():
    corpus = [Instance.from_words(["the", "dog"])]

    assert validate_corpus(corpus, tagged=False)["issue_count"] == 0
    assert validate_corpus(corpus, tagged=True)["error_count"] == 2


def test_validate_flags_tags_with_name_separator():
    corpus = [Instance.from_words(["a", "b", "c"], ["A|B", "C", "B|C"])]

    report = validate_corpus(corpus)

    assert [issue["type"] for issue in report["issues"]] == ["separator_tag_error", "separator_tag_error"]
    assert [issue["idx"] for issue in report["issues"]] == [0, 2]
    assert report["error_count"] == 2
