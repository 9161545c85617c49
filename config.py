from dotenv import load_dotenv
import os

from models import ProviderConfig

load_dotenv()

# Configuration class for the application
class Config:
    # Seed-ASR credentials; when any is missing the service simulates transcripts
    BYTEDANCE_API_KEY = os.getenv("BYTEDANCE_API_KEY")
    BYTEDANCE_API_ENDPOINT = os.getenv("BYTEDANCE_API_ENDPOINT")
    SEED_ASR_APP_ID = os.getenv("SEED_ASR_APP_ID")
    SEED_ASR_TOKEN = os.getenv("SEED_ASR_TOKEN")
    SEED_ASR_CLUSTER = os.getenv("SEED_ASR_CLUSTER", "volc_asr_common")
    SEED_ASR_LANGUAGE = os.getenv("SEED_ASR_LANGUAGE", "en-US")

    # Network configuration
    PROVIDER_TIMEOUT_SEC = float(os.getenv("PROVIDER_TIMEOUT_SEC", "5.0"))

    # File size limits
    MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB, a single spoken word is far smaller

    # Configuration settings
    UPLOAD_DIR = "uploads"
    ALLOWED_EXTENSIONS = {".wav", ".mp3", ".webm", ".m4a", ".ogg"}

    # Scoring weights
    CORE_WEIGHT = 0.50
    STRESS_WEIGHT = 0.25
    SYLLABLE_WEIGHT = 0.25
    NORMALIZED_MATCH_SCORE = 95.0
    LENIENT_SIMILARITY_FACTOR = 0.9
    NON_EXACT_CAP = 99

    # Provider-informed core blend
    PROVIDER_CONFIDENCE_WEIGHT = 0.60
    WORD_CONFIDENCE_WEIGHT = 0.25
    STRING_SIMILARITY_WEIGHT = 0.15

    # Accent tolerance
    ACCENT_RULE_BONUS = 15
    LENGTH_BONUS = 10
    LENGTH_SIMILARITY_THRESHOLD = 0.7
    CONTAINMENT_BONUS = 5
    CONTAINMENT_THRESHOLD = 0.6
    MAX_ACCENT_BONUS = 25

    # Feedback thresholds
    PASS_THRESHOLD = 70
    LOW_CONFIDENCE_THRESHOLD = 0.6
    HIGH_CONFIDENCE_THRESHOLD = 0.85
    SLOW_WORD_DURATION_SEC = 1.5
    MAX_ALTERNATIVES = 3

    # Practice sessions kept in memory, least recently used evicted first
    MAX_SESSIONS = int(os.getenv("MAX_SESSIONS", "500"))
    MAX_HISTORY = int(os.getenv("MAX_HISTORY", "50"))

    # "raw" or "boosted": which score drives feedback and the pass flag
    LEARNER_FACING_SCORE = os.getenv("LEARNER_FACING_SCORE", "raw")

    CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0")

    @classmethod
    def provider_config(cls) -> ProviderConfig:
        """Build the provider configuration from the environment."""
        return ProviderConfig(
            api_key=cls.BYTEDANCE_API_KEY,
            endpoint=cls.BYTEDANCE_API_ENDPOINT,
            app_id=cls.SEED_ASR_APP_ID,
            token=cls.SEED_ASR_TOKEN,
            cluster=cls.SEED_ASR_CLUSTER,
            language=cls.SEED_ASR_LANGUAGE,
            timeout_sec=cls.PROVIDER_TIMEOUT_SEC,
        )
