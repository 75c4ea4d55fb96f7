import numpy as np
import pytest

from chaincrf.config import CRFConfig
from chaincrf.model import CRF
from chaincrf.optimizer import TrainingError
from chaincrf.types import END, START, Instance

TEMPLATES = ["U00:%x[0,0]", "B"]


def test_memorizes_single_sentence(quiet_config):
    corpus = [Instance.from_words(["cat", "dog"], ["N", "N"])]

    model = CRF(["U00:%x[0,0]"], quiet_config).train(corpus)

    assert model.tag(["cat", "dog"]) == ["N", "N"]


def test_reproduces_training_tags(toy_corpus, quiet_config):
    model = CRF(TEMPLATES, quiet_config).train(toy_corpus)

    predicted = model.predict(toy_corpus)

    assert [p.tags for p in predicted] == [inst.tags for inst in toy_corpus]
    assert [p.words for p in predicted] == [inst.words for inst in toy_corpus]


def test_generalizes_through_transitions(toy_corpus, quiet_config):
    model = CRF(TEMPLATES, quiet_config).train(toy_corpus)

    assert model.tag(["the", "cat", "sleeps"]) == ["DT", "N", "V"]
    assert model.tag(["the", "zebra", "sleeps"]) == ["DT", "N", "V"]


def test_single_token_and_empty_inputs(toy_corpus, quiet_config):
    model = CRF(TEMPLATES, quiet_config).train(toy_corpus)

    assert model.tag(["dog"]) in (["N"], ["V"], ["DT"])
    assert model.tag([]) == []


def test_output_never_contains_sentinels(toy_corpus, quiet_config):
    model = CRF(TEMPLATES, quiet_config).train(toy_corpus)

    for words in (["barks"], ["the", "the", "the"], ["unseen", "words", "here", "7"]):
        tags = model.tag(words)
        assert len(tags) == len(words)
        assert START not in tags and END not in tags


def test_training_is_deterministic(toy_corpus, quiet_config):
    first = CRF(TEMPLATES, quiet_config).train(toy_corpus)
    second = CRF(TEMPLATES, quiet_config).train(toy_corpus)

    assert first.feature_index.reverse == second.feature_index.reverse
    assert first.vocabulary.words == second.vocabulary.words
    assert first.tags.tags == second.tags.tags
    assert np.allclose(first.weights, second.weights)


def test_decoding_does_not_touch_the_feature_index(toy_corpus, quiet_config):
    model = CRF(TEMPLATES, quiet_config).train(toy_corpus)
    names = list(model.feature_index.reverse)

    model.predict([Instance.from_words(["completely", "new", "words"])])

    assert model.feature_index.reverse == names


def test_gold_tags_on_decoding_input_are_ignored(toy_corpus, quiet_config):
    model = CRF(TEMPLATES, quiet_config).train(toy_corpus)
    wrong = [inst.with_tags(["V"] * len(inst)) for inst in toy_corpus]

    assert [p.tags for p in model.predict(wrong)] == [inst.tags for inst in toy_corpus]


def test_predict_before_training_raises():
    with pytest.raises(RuntimeError):
        CRF().tag(["dog"])


def test_non_positive_sigma_is_rejected_before_training(toy_corpus):
    config = CRFConfig(verbose=False)
    config.sigma = -1.0
    model = CRF(TEMPLATES, config)

    with pytest.raises(ValueError):
        model.train(toy_corpus)
    assert not model.is_trained


def test_untagged_training_corpus_is_rejected(quiet_config):
    with pytest.raises(ValueError):
        CRF(TEMPLATES, quiet_config).train([Instance.from_words(["dog"])])


def test_sentinel_tags_in_training_corpus_are_rejected(quiet_config):
    with pytest.raises(ValueError):
        CRF(TEMPLATES, quiet_config).train([Instance.from_words(["dog"], [START])])


def test_failed_optimization_leaves_model_untrained(monkeypatch, toy_corpus, quiet_config):
    def failing(*args, **kwargs):
        raise TrainingError("abnormal termination")

    monkeypatch.setattr("chaincrf.model.minimize", failing)
    model = CRF(TEMPLATES, quiet_config)

    with pytest.raises(TrainingError):
        model.train(toy_corpus)
    assert not model.is_trained
    assert model.feature_index is None


def test_empty_corpus_trains_but_cannot_tag_words(quiet_config):
    model = CRF(TEMPLATES, quiet_config).train([])

    assert model.is_trained
    assert len(model.weights) == 0
    assert model.tag([]) == []
    with pytest.raises(RuntimeError):
        model.tag(["dog"])


def test_verbose_training_reports_progress(toy_corpus, capsys):
    CRF(TEMPLATES, CRFConfig(max_iterations=5)).train(toy_corpus)

    out = capsys.readouterr().out
    assert "Num of features:" in out
    assert "Done!" in out


def test_dict_round_trip_decodes_identically(toy_corpus, quiet_config):
    model = CRF(TEMPLATES, quiet_config).train(toy_corpus)
    restored = CRF.from_dict(model.to_dict())
    probe = [Instance.from_words(["a", "dog", "bark"]), Instance.from_words(["zebra"])]

    assert [p.tags for p in restored.predict(probe)] == [p.tags for p in model.predict(probe)]
    assert np.array_equal(restored.weights, model.weights)
    assert restored.tags.tags == model.tags.tags


def test_from_dict_rejects_foreign_documents(toy_corpus, quiet_config):
    data = CRF(TEMPLATES, quiet_config).train(toy_corpus).to_dict()

    with pytest.raises(ValueError):
        CRF.from_dict({**data, "format": "something-else"})
    with pytest.raises(ValueError):
        CRF.from_dict({**data, "weights": data["weights"][:-1]})
    with pytest.raises(ValueError):
        CRF.from_dict({k: v for k, v in data.items() if k != "activations"})


def test_decoding_is_stable_for_very_large_weights(toy_corpus, quiet_config):
    model = CRF(TEMPLATES, quiet_config).train(toy_corpus)
    words = ["the", "dog", "barks", "the", "cat", "sleeps"]
    expected = model.tag(words)

    for scale in (300.0, 1000.0):
        data = model.to_dict()
        data["weights"] = [w * scale for w in data["weights"]]
        scaled = CRF.from_dict(data)

        assert scaled.tag(words) == expected


def test_tags_containing_the_name_separator_are_rejected(quiet_config):
    corpus = [Instance.from_words(["a", "b"], ["X|Y", "Z"])]

    with pytest.raises(ValueError):
        CRF(TEMPLATES, quiet_config).train(corpus)
