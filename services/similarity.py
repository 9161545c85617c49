from collections import Counter
from typing import Sequence
from rapidfuzz.distance import Jaro, LCSseq, Levenshtein

# Two empty inputs count as a perfect match (similarity 1.0, distance 0);
# a single empty input has similarity 0.0.


def levenshtein_distance(a: Sequence, b: Sequence) -> int:
    """Classic edit distance with unit insert, delete and substitute costs."""
    if not a or not b:
        return max(len(a), len(b))
    return Levenshtein.distance(a, b)


def jaro_similarity(a: str, b: str) -> float:
    """Jaro similarity; the match window is half the longer string minus one."""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return Jaro.similarity(a, b)


def common_prefix_length(a: str, b: str, limit: int = 4) -> int:
    length = 0
    for char_a, char_b in zip(a[:limit], b[:limit]):
        if char_a != char_b:
            break
        length += 1
    return length


def jaro_winkler_similarity(a: str, b: str, prefix_scale: float = 0.1) -> float:
    """Jaro similarity with a bonus for a shared prefix of up to four characters."""
    # Bonus applies at every Jaro level, unlike the usual 0.7 boost threshold
    jaro = jaro_similarity(a, b)
    prefix = common_prefix_length(a, b)
    return jaro + prefix * prefix_scale * (1 - jaro)


def longest_common_subsequence(seq_a: Sequence, seq_b: Sequence) -> int:
    """Length of the longest common subsequence of two token sequences."""
    if not seq_a or not seq_b:
        return 0
    return int(LCSseq.similarity(seq_a, seq_b))


def substring_containment_ratio(a: str, b: str) -> float:
    """Share of the longer string covered when it contains the shorter one."""
    longer, shorter = (a, b) if len(a) >= len(b) else (b, a)
    if not longer:
        return 1.0
    if shorter and shorter in longer:
        return len(shorter) / len(longer)
    return 0.0


def length_similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1 - abs(len(a) - len(b)) / longest


def character_containment_ratio(target: str, spoken: str) -> float:
    """Fraction of target characters found in spoken, each spoken character used once."""
    if not target:
        return 1.0 if not spoken else 0.0
    available = Counter(spoken)
    found = 0
    for char in target:
        if available[char] > 0:
            available[char] -= 1
            found += 1
    return found / len(target)
