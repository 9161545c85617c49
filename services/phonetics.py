import random
import re
from typing import Callable, List, Optional, Tuple

VOWEL_LETTERS = "aeiouy"

# Applied in this order; reordering changes the output
NORMALIZATION_STEPS: List[Tuple[str, str]] = [
    ("ph", "f"),
    ("ck", "k"),
    ("qu", "kw"),
    ("x", "ks"),
    ("c", "k"),
    ("y", "i"),
]

# (name, pattern, replacement); only the first occurrence is replaced
ACCENT_RULES: List[Tuple[str, str, str]] = [
    ("r_dropping", r"r$", ""),
    ("er_to_a", r"er$", "a"),
    ("a_to_e", r"a", "e"),
    ("i_to_e", r"i", "e"),
    ("o_to_u", r"o", "u"),
    ("th_to_d", r"th", "d"),
    ("th_to_f", r"th", "f"),
    ("v_to_w", r"v", "w"),
    ("w_to_v", r"w", "v"),
    ("z_to_s", r"z", "s"),
    ("j_to_y", r"j", "y"),
]

_VOWEL_SHIFTS = [("a", "e"), ("i", "e"), ("o", "u"), ("e", "i"), ("u", "o")]


def clean_word(word: str) -> str:
    """Lowercase and strip punctuation and whitespace."""
    word = word.lower().strip()
    word = re.sub(r"[^\w\s]", "", word)
    return re.sub(r"\s+", "", word)


def normalize_for_accents(word: str) -> str:
    normalized = clean_word(word)
    for source, target in NORMALIZATION_STEPS:
        normalized = normalized.replace(source, target)

    normalized = re.sub(r"(.)\1+", r"\1", normalized)

    # Silent trailing e, kept when nothing else carries a vowel ("the", "be")
    if len(normalized) > 2 and normalized.endswith("e") and re.search(r"[aeiou]", normalized[:-1]):
        normalized = normalized[:-1]
    return normalized


def estimate_syllable_count(word: str) -> int:
    lowered = word.lower()
    syllables = len(re.findall(f"[{VOWEL_LETTERS}]+", lowered))
    if lowered.endswith("e") and syllables > 1:
        syllables -= 1
    return max(1, syllables)


def vowel_sequence(word: str) -> List[str]:
    return [char for char in word.lower() if char in VOWEL_LETTERS]


def apply_accent_rule(word: str, pattern: str, replacement: str) -> str:
    return re.sub(pattern, replacement, word, count=1)


def matches_accent_rule(target: str, spoken: str) -> Optional[str]:
    """Name of the first accent rule that makes target and spoken equal."""
    for name, pattern, replacement in ACCENT_RULES:
        modified_target = apply_accent_rule(target, pattern, replacement)
        modified_spoken = apply_accent_rule(spoken, pattern, replacement)
        if (
            modified_target == spoken
            or target == modified_spoken
            or modified_target == modified_spoken
        ):
            return name
    return None


def drop_every_r(word: str) -> str:
    return word.replace("r", "")


def shift_first_vowel(word: str) -> str:
    for source, target in _VOWEL_SHIFTS:
        if source in word:
            return word.replace(source, target, 1)
    return word


def vowels_to_e(word: str) -> str:
    return re.sub(r"[aiou]", "e", word)


def truncate(word: str) -> str:
    return word[:-1] if len(word) > 1 else word


def pluralize(word: str) -> str:
    if word.endswith(("s", "x", "z", "sh", "ch")):
        return word + "es"
    return word + "s"


def _accent_transformations() -> List[Callable[[str], str]]:
    return [
        (lambda w, p=pattern, r=replacement: apply_accent_rule(w, p, r))
        for _, pattern, replacement in ACCENT_RULES
    ]


_SLIGHT_TRANSFORMATIONS: List[Callable[[str], str]] = [truncate, pluralize, shift_first_vowel]
_MISTAKE_TRANSFORMATIONS: List[Callable[[str], str]] = [vowels_to_e, truncate, pluralize, drop_every_r]


def _apply_random(word: str, transformations: List[Callable[[str], str]], rng: random.Random) -> str:
    base = word.lower()
    candidates = [t(base) for t in transformations]
    changed = [c for c in candidates if c and c != base]
    if not changed:
        return base
    return rng.choice(changed)


def generate_accent_variation(word: str, rng: Optional[random.Random] = None) -> str:
    """Apply one accent rule, so the result is always accent-equivalent to word."""
    return _apply_random(word, _accent_transformations(), rng or random.Random())


def generate_slight_variation(word: str, rng: Optional[random.Random] = None) -> str:
    return _apply_random(word, _SLIGHT_TRANSFORMATIONS, rng or random.Random())


def generate_common_mistake(word: str, rng: Optional[random.Random] = None) -> str:
    return _apply_random(word, _MISTAKE_TRANSFORMATIONS, rng or random.Random())


def simulate_transcripts(word: str, rng: random.Random) -> List[str]:
    """Candidate transcripts for the simulated provider, perfect match first."""
    return [
        word,
        word.lower(),
        generate_accent_variation(word, rng),
        generate_slight_variation(word, rng),
        generate_common_mistake(word, rng),
    ]
