from typing import List, Optional, Tuple
from config import Config
from models import PronunciationAnalysis, ProviderResult, QualityTier
from services.phonetics import clean_word, estimate_syllable_count, vowel_sequence
from services.similarity import levenshtein_distance

# Single source of tier boundaries, highest first
QUALITY_TIERS: Tuple[Tuple[int, QualityTier], ...] = (
    (90, QualityTier.EXCELLENT),
    (80, QualityTier.GOOD),
    (50, QualityTier.FAIR),
    (0, QualityTier.NEEDS_IMPROVEMENT),
)

FEEDBACK_MESSAGES: Tuple[Tuple[int, str], ...] = (
    (95, "Perfect pronunciation! Your speech is crystal clear."),
    (85, "Excellent pronunciation! Very close to native speaker quality."),
    (75, "Good pronunciation! Just minor adjustments needed for clarity."),
    (65, "Fair pronunciation. Focus on stress patterns and vowel sounds."),
    (50, "Keep practicing! Pay attention to each syllable and speak slowly."),
    (0, "Try again! Listen carefully to the example and repeat slowly."),
)

NO_SPEECH_MESSAGE = "We couldn't hear a word. Listen to the example and try again."

# Issue key -> (issue text, suggestion text)
ISSUES = {
    "no_speech": (
        "No speech was detected",
        "Hold the microphone closer and say the word clearly.",
    ),
    "several_words": (
        "More than one word was heard",
        "Say only the target word, on its own.",
    ),
    "syllables": (
        "Syllable count differs from the target",
        "Clap out each syllable while you say the word slowly.",
    ),
    "start": (
        "The starting sound differs from the target",
        "Focus on the very first sound before saying the rest of the word.",
    ),
    "ending": (
        "The ending sound differs from the target",
        "Finish the word fully and hold the last sound a moment longer.",
    ),
    "vowels": (
        "Vowel sounds differ from the target",
        "Listen to the example and copy the vowel sounds exactly.",
    ),
    "dropped": (
        "Some sounds may have been dropped",
        "Slow down so every sound in the word comes through.",
    ),
    "extra": (
        "Extra sounds were added",
        "Keep the word short and stop right after the last sound.",
    ),
    "low_confidence": (
        "The recognizer was unsure what it heard",
        "Speak a little louder in a quiet place.",
    ),
    "slow": (
        "The word was stretched out or hesitant",
        "Try saying the word in one smooth breath.",
    ),
}

DEFAULT_SUGGESTION = "Listen to the example again and repeat it slowly."


def quality_tier(score: int) -> QualityTier:
    for threshold, tier in QUALITY_TIERS:
        if score >= threshold:
            return tier
    return QualityTier.NEEDS_IMPROVEMENT


class FeedbackGenerator:
    def __init__(self):
        self.low_confidence = Config.LOW_CONFIDENCE_THRESHOLD
        self.high_confidence = Config.HIGH_CONFIDENCE_THRESHOLD
        self.slow_word_duration = Config.SLOW_WORD_DURATION_SEC

    def generate_feedback(self, score: int, transcript: Optional[str] = None) -> str:
        """Short learner-facing message for a score."""
        if transcript is not None and not clean_word(transcript):
            return NO_SPEECH_MESSAGE
        for threshold, message in FEEDBACK_MESSAGES:
            if score >= threshold:
                return message
        return FEEDBACK_MESSAGES[-1][1]

    def generate_analysis(
        self,
        target_word: str,
        transcript: str,
        score: int,
        provider_result: Optional[ProviderResult] = None,
    ) -> PronunciationAnalysis:
        """Qualitative breakdown of an attempt; never changes the score."""
        target = clean_word(target_word)
        spoken = clean_word(transcript)

        if not spoken or not target:
            issue, suggestion = ISSUES["no_speech"]
            return PronunciationAnalysis(
                overall_quality=QualityTier.NEEDS_IMPROVEMENT,
                specific_issues=[issue],
                strengths=["You gave it a try, and every attempt counts."],
                suggestions=[suggestion],
            )

        issue_keys = self._find_issues(target, spoken, transcript, provider_result)
        strengths = self._find_strengths(target, spoken, provider_result)

        if score >= 80:
            suggestions: List[str] = []
        elif issue_keys:
            suggestions = [ISSUES[issue_keys[0]][1]]
        else:
            suggestions = [DEFAULT_SUGGESTION]

        return PronunciationAnalysis(
            overall_quality=quality_tier(score),
            specific_issues=[ISSUES[key][0] for key in issue_keys],
            strengths=strengths,
            suggestions=suggestions,
        )

    def _find_issues(
        self,
        target: str,
        spoken: str,
        transcript: str,
        provider_result: Optional[ProviderResult],
    ) -> List[str]:
        if target == spoken:
            return []

        issues = []
        if len(transcript.split()) > 1:
            issues.append("several_words")
        if estimate_syllable_count(target) != estimate_syllable_count(spoken):
            issues.append("syllables")
        if target[0] != spoken[0]:
            issues.append("start")
        if target[-1] != spoken[-1]:
            issues.append("ending")
        if vowel_sequence(target) != vowel_sequence(spoken):
            issues.append("vowels")
        if len(spoken) < len(target):
            issues.append("dropped")
        elif len(spoken) > len(target):
            issues.append("extra")

        if provider_result is not None:
            if provider_result.confidence is not None and provider_result.confidence < self.low_confidence:
                issues.append("low_confidence")
            if self._is_hesitant(provider_result):
                issues.append("slow")
        return issues

    def _find_strengths(
        self, target: str, spoken: str, provider_result: Optional[ProviderResult]
    ) -> List[str]:
        if target == spoken:
            return ["Perfect match with the target word"]

        strengths = []
        if levenshtein_distance(target, spoken) == 1:
            strengths.append("Very close: only one sound differs from the target")
        if target[0] == spoken[0]:
            strengths.append("Strong start: the first sound was clear")
        if estimate_syllable_count(target) == estimate_syllable_count(spoken):
            strengths.append("Syllable count matches the target")
        if vowel_sequence(target) == vowel_sequence(spoken):
            strengths.append("Vowel sounds match the target")
        if target[-1] == spoken[-1]:
            strengths.append("The word ending was on target")
        if (
            provider_result is not None
            and provider_result.confidence is not None
            and provider_result.confidence >= self.high_confidence
        ):
            strengths.append("Clear, confident delivery")

        if not strengths:
            strengths.append("Good effort attempting a tricky word")
        return strengths

    def _is_hesitant(self, provider_result: ProviderResult) -> bool:
        words = provider_result.words or []
        if not words:
            return False
        duration = words[-1].end_time - words[0].start_time
        return duration > self.slow_word_duration * len(words)
