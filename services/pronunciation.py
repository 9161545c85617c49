from typing import List, Optional
from config import Config
from models import ProviderResult, ScoreBreakdown
from services.phonetics import (
    clean_word,
    estimate_syllable_count,
    matches_accent_rule,
    normalize_for_accents,
    vowel_sequence,
)
from services.similarity import (
    character_containment_ratio,
    jaro_winkler_similarity,
    length_similarity,
    longest_common_subsequence,
    substring_containment_ratio,
)

# (raw lower bound, raw upper bound, boosted at lower bound, boosted at upper bound)
ENCOURAGEMENT_CURVE = (
    (20, 30, 45, 45),
    (30, 40, 45, 65),
    (40, 70, 65, 85),
    (70, 85, 85, 92),
    (85, 100, 92, 100),
)


def lenient_similarity(a: str, b: str) -> float:
    """Best of Jaro-Winkler and substring containment, on a 0-100 scale."""
    return max(jaro_winkler_similarity(a, b) * 100, substring_containment_ratio(a, b) * 100)


def enhance_accuracy(raw_accuracy: int) -> int:
    """Encouragement remap that lifts mid-range scores.

    Deliberately not proportional: a learner who scores 20 sees 45. The
    curve is monotonic and never returns less than the raw score.
    """
    raw_accuracy = max(0, min(100, int(raw_accuracy)))
    for low, high, boosted_low, boosted_high in ENCOURAGEMENT_CURVE:
        if low <= raw_accuracy < high or (high == 100 and raw_accuracy == 100):
            boosted = boosted_low + (raw_accuracy - low) * (boosted_high - boosted_low) / (high - low)
            return max(raw_accuracy, min(100, round(boosted)))
    return raw_accuracy


class PronunciationScorer:
    def __init__(self):
        self.core_weight = Config.CORE_WEIGHT
        self.stress_weight = Config.STRESS_WEIGHT
        self.syllable_weight = Config.SYLLABLE_WEIGHT
        self.non_exact_cap = Config.NON_EXACT_CAP

    def score(self, target_word: str, provider_result: ProviderResult) -> ScoreBreakdown:
        """Compute raw and boosted accuracy for one attempt."""
        target = clean_word(target_word)
        spoken = clean_word(provider_result.transcript)

        if not target or not spoken:
            return self._breakdown(0.0, 0.0, 0.0, 0, False, 0)
        if target == spoken:
            return self._breakdown(100.0, 100.0, 100.0, 0, False, 100)

        core = self.calculate_provider_core_accuracy(target, spoken, provider_result)
        used_provider = core is not None
        if core is None:
            core = self.calculate_core_accuracy(target, spoken)

        stress = self.calculate_stress_pattern_accuracy(target, spoken)
        syllables = self.calculate_syllable_accuracy(target, spoken)
        bonus = self.calculate_accent_tolerance_bonus(target, spoken)

        total = (
            core * self.core_weight
            + stress * self.stress_weight
            + syllables * self.syllable_weight
            + bonus
        )
        raw = int(round(max(0.0, min(float(self.non_exact_cap), total))))
        return self._breakdown(core, stress, syllables, bonus, used_provider, raw)

    def calculate_raw_accuracy(self, target_word: str, transcript: str) -> int:
        return self.score(target_word, ProviderResult(transcript=transcript)).raw_accuracy

    def calculate_core_accuracy(self, target: str, spoken: str) -> float:
        normalized_target = normalize_for_accents(target)
        normalized_spoken = normalize_for_accents(spoken)
        if normalized_target == normalized_spoken:
            return Config.NORMALIZED_MATCH_SCORE
        return lenient_similarity(normalized_target, normalized_spoken) * Config.LENIENT_SIMILARITY_FACTOR

    def calculate_provider_core_accuracy(
        self, target: str, spoken: str, provider_result: ProviderResult
    ) -> Optional[float]:
        """Blend provider confidences into the core term; None when the provider sent none."""
        terms = []
        if provider_result.confidence is not None:
            terms.append((provider_result.confidence * 100, Config.PROVIDER_CONFIDENCE_WEIGHT))

        word_confidence = self._mean_word_confidence(provider_result)
        if word_confidence is not None:
            terms.append((word_confidence * 100, Config.WORD_CONFIDENCE_WEIGHT))

        if not terms:
            return None

        terms.append((self.calculate_core_accuracy(target, spoken), Config.STRING_SIMILARITY_WEIGHT))
        total_weight = sum(weight for _, weight in terms)
        return sum(value * weight for value, weight in terms) / total_weight

    def calculate_stress_pattern_accuracy(self, target: str, spoken: str) -> float:
        target_vowels = vowel_sequence(target)
        spoken_vowels = vowel_sequence(spoken)
        if not target_vowels or not spoken_vowels:
            return 50.0
        common = longest_common_subsequence(target_vowels, spoken_vowels)
        similarity = common / max(len(target_vowels), len(spoken_vowels)) * 100
        # Any attempt at the word earns the floor
        return max(60.0, similarity)

    def calculate_syllable_accuracy(self, target: str, spoken: str) -> float:
        target_count = estimate_syllable_count(target)
        spoken_count = estimate_syllable_count(spoken)
        difference = abs(target_count - spoken_count)
        if difference == 0:
            return 100.0
        if difference == 1:
            return 85.0
        return max(50.0, 100 - (difference / max(target_count, spoken_count)) * 50)

    def calculate_accent_tolerance_bonus(self, target: str, spoken: str) -> int:
        bonus = 0
        if matches_accent_rule(target, spoken):
            bonus += Config.ACCENT_RULE_BONUS
        if length_similarity(target, spoken) > Config.LENGTH_SIMILARITY_THRESHOLD:
            bonus += Config.LENGTH_BONUS
        if character_containment_ratio(target, spoken) > Config.CONTAINMENT_THRESHOLD:
            bonus += Config.CONTAINMENT_BONUS
        return min(Config.MAX_ACCENT_BONUS, bonus)

    def _mean_word_confidence(self, provider_result: ProviderResult) -> Optional[float]:
        confidences: List[float] = [
            word.confidence for word in provider_result.words or [] if word.confidence is not None
        ]
        if not confidences:
            return None
        return sum(confidences) / len(confidences)

    def _breakdown(
        self,
        core: float,
        stress: float,
        syllables: float,
        bonus: int,
        used_provider: bool,
        raw: int,
    ) -> ScoreBreakdown:
        return ScoreBreakdown(
            core_accuracy=round(core, 2),
            stress_accuracy=round(stress, 2),
            syllable_accuracy=round(syllables, 2),
            accent_bonus=bonus,
            used_provider_confidence=used_provider,
            raw_accuracy=raw,
            boosted_accuracy=enhance_accuracy(raw),
        )
