# portalbot/ai/vectorizer.py
"""
Turns labeled example patterns into an augmented, padded integer corpus.

Every pattern contributes its lower-cased original plus up to three
perturbed variants (typo, word dropout, synonym), all carrying the
source intent. Tokens are whitespace-delimited; index 0 is reserved
for padding / unknown.
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Tuple

MAX_SEQUENCE_LENGTH = 20
PAD_INDEX = 0
DROPOUT_PROBABILITY = 0.2

COMMON_TYPOS: Dict[str, List[str]] = {
    "hello": ["helo", "hallo", "hullo"],
    "hi": ["hey", "hii"],
    "please": ["plz", "pls", "plese"],
    "thanks": ["thanx", "thnx", "thx"],
    "account": ["acount", "acct", "accnt"],
    "password": ["passwd", "pswrd", "pwd"],
    "help": ["halp", "hlp"],
    "balance": ["balnce", "balanse"],
    "statement": ["statment", "stmt"],
    "payment": ["paymnt", "payement"],
    "meter": ["metre", "mtr"],
    "reading": ["readng", "redaing"],
    "water": ["watr", "wter"],
    "electricity": ["electricty", "elecricity"],
}

SYNONYMS: Dict[str, List[str]] = {
    "hello": ["hi", "greetings", "hey"],
    "help": ["assist", "support", "aid"],
    "problem": ["issue", "trouble", "difficulty"],
    "need": ["require", "want", "seek"],
    "show": ["display", "present", "reveal"],
    "tell": ["inform", "explain", "describe"],
    "pay": ["settle", "clear"],
    "bill": ["invoice", "account"],
    "check": ["view", "see"],
}

TrainingExample = Tuple[str, str]


@dataclass
class Corpus:
    sequences: List[List[int]] = field(default_factory=list)
    labels: List[int] = field(default_factory=list)
    vocabulary: Dict[str, int] = field(default_factory=dict)
    intents: List[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.sequences)


def _substitute(pattern: str, table: Dict[str, List[str]], rng: random.Random) -> str:
    words = pattern.split()
    out = []
    for word in words:
        choices = table.get(word.lower())
        out.append(rng.choice(choices) if choices else word)
    return " ".join(out)


def typo_variant(pattern: str, rng: random.Random | None = None) -> str:
    return _substitute(pattern, COMMON_TYPOS, rng or random.Random())


def synonym_variant(pattern: str, rng: random.Random | None = None) -> str:
    return _substitute(pattern, SYNONYMS, rng or random.Random())


def dropout_variant(pattern: str, rng: random.Random | None = None) -> str:
    """Drop each word with p=0.2. Short patterns (<= 2 words) come back untouched.

    May return an empty string when every word is dropped.
    """
    words = pattern.split()
    if len(words) <= 2:
        return pattern
    rng = rng or random.Random()
    return " ".join(w for w in words if rng.random() > DROPOUT_PROBABILITY)


def augment(pattern: str, rng: random.Random | None = None) -> set[str]:
    rng = rng or random.Random()
    original = pattern.lower()
    variants = {original}
    for candidate in (
        typo_variant(pattern, rng),
        dropout_variant(pattern, rng),
        synonym_variant(pattern, rng),
    ):
        # an all-dropped variant carries no tokens; skip it
        if candidate:
            variants.add(candidate.lower())
    return variants


def build_vocabulary(patterns: Iterable[str]) -> Dict[str, int]:
    vocabulary: Dict[str, int] = {}
    for pattern in patterns:
        for token in pattern.split():
            if token not in vocabulary:
                vocabulary[token] = len(vocabulary) + 1
    return vocabulary


def pad_sequence(indices: Sequence[int], max_len: int = MAX_SEQUENCE_LENGTH) -> List[int]:
    seq = list(indices[:max_len])
    seq.extend([PAD_INDEX] * (max_len - len(seq)))
    return seq


def encode_sequence(pattern: str, vocabulary: Dict[str, int], max_len: int = MAX_SEQUENCE_LENGTH) -> List[int]:
    return pad_sequence([vocabulary.get(tok, PAD_INDEX) for tok in pattern.split()], max_len)


def expand_examples(examples: Iterable[TrainingExample], rng: random.Random | None = None) -> List[TrainingExample]:
    """Lower-cased originals followed by their non-duplicate augmentations."""
    rng = rng or random.Random()
    expanded: List[TrainingExample] = []
    for pattern, intent in examples:
        original = pattern.lower()
        expanded.append((original, intent))
        for variant in sorted(augment(pattern, rng) - {original}):
            expanded.append((variant, intent))
    return expanded


def build_corpus(examples: Iterable[TrainingExample], rng: random.Random | None = None) -> Corpus:
    expanded = expand_examples(examples, rng)
    if not expanded:
        return Corpus()

    patterns = [p for p, _ in expanded]
    vocabulary = build_vocabulary(patterns)

    intents: List[str] = []
    for _, intent in expanded:
        if intent not in intents:
            intents.append(intent)
    intent_ids = {name: i for i, name in enumerate(intents)}

    return Corpus(
        sequences=[encode_sequence(p, vocabulary) for p in patterns],
        labels=[intent_ids[intent] for _, intent in expanded],
        vocabulary=vocabulary,
        intents=intents,
    )
