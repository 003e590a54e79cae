from __future__ import annotations

import random

from portalbot.ai.vectorizer import (
    COMMON_TYPOS,
    MAX_SEQUENCE_LENGTH,
    PAD_INDEX,
    SYNONYMS,
    augment,
    build_corpus,
    build_vocabulary,
    dropout_variant,
    encode_sequence,
    expand_examples,
    pad_sequence,
    synonym_variant,
    typo_variant,
)

from .conftest import EXAMPLES


# -------------------------
# AUGMENTATION
# -------------------------
def test_augment_always_contains_lowercased_original():
    rng = random.Random(7)
    for pattern in ["Hello There", "PAY my Bill", "x", "Show me my account balance please"]:
        assert pattern.lower() in augment(pattern, rng)


def test_augment_outputs_are_lowercase_and_non_empty():
    rng = random.Random(3)
    for _ in range(50):
        for variant in augment("Please Help me check my Water Meter reading", rng):
            assert variant
            assert variant == variant.lower()


def test_dropout_leaves_short_patterns_untouched():
    rng = random.Random(0)
    for _ in range(20):
        assert dropout_variant("hi", rng) == "hi"
        assert dropout_variant("hi there", rng) == "hi there"


def test_dropout_only_removes_words():
    rng = random.Random(11)
    pattern = "i need to report a burst water pipe"
    for _ in range(30):
        kept = dropout_variant(pattern, rng).split()
        original = pattern.split()
        # surviving words keep their relative order
        it = iter(original)
        assert all(word in it for word in kept)


def test_typo_variant_only_uses_table_entries():
    rng = random.Random(5)
    out = typo_variant("hello account xyz", rng).split()
    assert out[0] in COMMON_TYPOS["hello"]
    assert out[1] in COMMON_TYPOS["account"]
    assert out[2] == "xyz"


def test_synonym_variant_matches_case_insensitively():
    rng = random.Random(1)
    out = synonym_variant("HELP me", rng).split()
    assert out[0] in SYNONYMS["help"]
    assert out[1] == "me"


def test_expand_examples_puts_original_first_and_keeps_label():
    expanded = expand_examples([("Hello There", "greeting")], random.Random(2))
    assert expanded[0] == ("hello there", "greeting")
    assert all(intent == "greeting" for _, intent in expanded)
    assert len({p for p, _ in expanded}) == len(expanded)


# -------------------------
# ENCODING
# -------------------------
def test_pad_sequence_pads_and_truncates():
    assert pad_sequence([3, 4]) == [3, 4] + [PAD_INDEX] * (MAX_SEQUENCE_LENGTH - 2)
    assert pad_sequence(list(range(1, 30))) == list(range(1, MAX_SEQUENCE_LENGTH + 1))


def test_encode_sequence_maps_unknown_to_zero():
    vocab = {"hello": 1, "there": 2}
    assert encode_sequence("hello stranger there", vocab)[:4] == [1, 0, 2, 0]
    assert encode_sequence("", vocab) == [0] * MAX_SEQUENCE_LENGTH


def test_vocabulary_indices_start_at_one_and_are_unique():
    vocab = build_vocabulary(["hi there", "there you are", "hi"])
    assert vocab == {"hi": 1, "there": 2, "you": 3, "are": 4}


# -------------------------
# CORPUS
# -------------------------
def test_build_corpus_single_intent():
    corpus = build_corpus([("hello", "greeting"), ("hi", "greeting")], random.Random(0))
    assert corpus.intents == ["greeting"]
    assert len(corpus) >= 2
    assert all(len(seq) == MAX_SEQUENCE_LENGTH for seq in corpus.sequences)
    assert set(corpus.labels) == {0}


def test_build_corpus_invariants():
    corpus = build_corpus(EXAMPLES, random.Random(42))

    assert corpus.intents == ["greeting", "account_balance", "pay_bill"]
    assert len(corpus.sequences) == len(corpus.labels)
    assert all(0 <= label < len(corpus.intents) for label in corpus.labels)

    indices = list(corpus.vocabulary.values())
    assert min(indices) >= 1
    assert len(set(indices)) == len(indices)
    assert sorted(indices) == list(range(1, len(indices) + 1))

    for seq in corpus.sequences:
        assert len(seq) == MAX_SEQUENCE_LENGTH
        assert all(0 <= i <= len(corpus.vocabulary) for i in seq)


def test_build_corpus_is_deterministic_for_a_seed():
    a = build_corpus(EXAMPLES, random.Random(9))
    b = build_corpus(EXAMPLES, random.Random(9))
    assert a.sequences == b.sequences
    assert a.vocabulary == b.vocabulary


def test_build_corpus_empty_input():
    corpus = build_corpus([])
    assert len(corpus) == 0
    assert corpus.vocabulary == {}
    assert corpus.intents == []
