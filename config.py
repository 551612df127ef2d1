"""Configuration module for the YouTube-to-article pipeline."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# LLM provider configuration
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "openrouter")  # openrouter | anthropic
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")
OPENROUTER_BASE_URL = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
OPENROUTER_REFERER = os.getenv("OPENROUTER_REFERER")
OPENROUTER_TITLE = os.getenv("OPENROUTER_TITLE")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "180"))

# Per-stage model overrides (empty = use the plan default)
MODEL_CHAPTERS = os.getenv("MODEL_CHAPTERS", "")
MODEL_WRITER = os.getenv("MODEL_WRITER", "")
MODEL_FEEDBACK = os.getenv("MODEL_FEEDBACK", "")

# Transcript chunking (seconds)
CHUNK_TARGET_SECONDS = float(os.getenv("CHUNK_TARGET_SECONDS", "45"))
CHUNK_MAX_SECONDS = float(os.getenv("CHUNK_MAX_SECONDS", "75"))
CHUNK_PAUSE_SECONDS = float(os.getenv("CHUNK_PAUSE_SECONDS", "1.5"))

# Chapter structure
MIN_CHAPTERS = 2
MAX_CHAPTERS = int(os.getenv("MAX_CHAPTERS", "6"))
MAX_SECONDARY_KEYWORDS = 12
CHAPTER_OVERLAP_TOLERANCE_SEC = float(os.getenv("CHAPTER_OVERLAP_TOLERANCE_SEC", "1"))
CHAPTER_END_SNAP_SEC = float(os.getenv("CHAPTER_END_SNAP_SEC", "5"))

# Word budget
OVERALL_TARGET_WORDS = int(os.getenv("OVERALL_TARGET_WORDS", "1500"))
INTRO_TARGET_WORDS = 360
CONCLUSION_TARGET_WORDS = 320
MIN_SECTION_WORDS_TOTAL = 1200

# Sampling
CHAPTERS_TEMPERATURE = 0.2
WRITER_TEMPERATURE = 0.6
FEEDBACK_TEMPERATURE = 0.3

# Retry
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
RETRY_BASE_DELAY = float(os.getenv("RETRY_BASE_DELAY", "1.0"))
RETRY_MAX_DELAY = 5.0
CAPTION_ATTEMPTS_PER_LANG = 3
CAPTION_RETRY_DELAY = 0.25

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Storage Configuration
DB_PATH = Path(os.getenv("DB_PATH", "./output/pipeline.db"))

# Output Paths
OUTPUT_DIR = Path(os.getenv("OUTPUT_DIR", "./output"))
ARTICLES_DIR = OUTPUT_DIR / "articles"

# Ensure output directories exist
DB_PATH.parent.mkdir(parents=True, exist_ok=True)
ARTICLES_DIR.mkdir(parents=True, exist_ok=True)
