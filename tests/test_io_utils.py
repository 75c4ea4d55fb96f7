import json
from pathlib import Path

import pytest

from chaincrf.io_utils import load_corpus, load_model, save_corpus, save_model
from chaincrf.model import CRF
from chaincrf.types import Instance


def test_load_corpus_splits_sequences_on_blank_lines(tmp_path: Path) -> None:
    path = tmp_path / "train.txt"
    path.write_text(
        "# comment line\n"
        "The\tDT\tB-NP\n"
        "dog\tNN\tI-NP\n"
        "\n"
        "\n"
        "barks VBZ B-VP\n",
        encoding="utf-8",
    )

    corpus = load_corpus(str(path))

    assert len(corpus) == 2
    assert corpus[0].words == ["The", "dog"]
    assert corpus[0].tags == ["B-NP", "I-NP"]
    assert corpus[0].tokens[0].columns == ("The", "DT")
    assert corpus[1].tokens[0].column(1) == "VBZ"


def test_load_untagged_corpus_keeps_every_column(tmp_path: Path) -> None:
    path = tmp_path / "test.txt"
    path.write_text("The DT\ndog NN\n", encoding="utf-8")

    corpus = load_corpus(str(path), tagged=False)

    assert corpus[0].tokens[1].columns == ("dog", "NN")
    assert corpus[0].tags == [None, None]


def test_load_corpus_rejects_tagged_line_without_tag(tmp_path: Path) -> None:
    path = tmp_path / "bad.txt"
    path.write_text("dog N\nlonely\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_corpus(str(path))


def test_load_corpus_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_corpus(str(tmp_path / "missing.txt"))


def test_save_corpus_writes_column_format(tmp_path: Path) -> None:
    out_path = tmp_path / "nested" / "out.txt"
    corpus = [Instance.from_words(["the", "dog"], ["DT", "N"]), Instance.from_words(["bark"])]

    save_corpus(str(out_path), corpus)

    assert out_path.read_text(encoding="utf-8") == "the\tDT\ndog\tN\n\nbark\n\n"
    assert load_corpus(str(out_path), tagged=False)[1].words == ["bark"]


def test_saved_model_decodes_like_the_trained_one(tmp_path: Path, toy_corpus, quiet_config) -> None:
    model = CRF(["U00:%x[0,0]", "B"], quiet_config).train(toy_corpus)
    path = tmp_path / "model.json"

    save_model(str(path), model)
    restored = load_model(str(path))

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["format"] == "chaincrf-model"
    assert restored.feature_index.reverse == model.feature_index.reverse
    assert [p.tags for p in restored.predict(toy_corpus)] == [p.tags for p in model.predict(toy_corpus)]


def test_save_model_requires_training(tmp_path: Path) -> None:
    with pytest.raises(RuntimeError):
        save_model(str(tmp_path / "model.json"), CRF())


def test_load_model_error_cases(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_model(str(tmp_path / "missing.json"))

    bad_json = tmp_path / "bad.json"
    bad_json.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        load_model(str(bad_json))

    not_object = tmp_path / "list.json"
    not_object.write_text("[]", encoding="utf-8")
    with pytest.raises(TypeError):
        load_model(str(not_object))
