"""Central Configuration for the Aliya intake engine."""
import os
from datetime import timedelta
from pathlib import Path
from dotenv import load_dotenv

# Base Directory (Root of the project)
BASE_DIR = Path(__file__).resolve().parent.parent

# Load Environment Variables
load_dotenv(BASE_DIR / ".env")

# LLM Settings
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")
GEMINI_MODEL_NAME = os.getenv("GEMINI_MODEL_NAME", "gemini-2.0-flash")
GENERATION_TEMPERATURE = 0.6
GENERATION_MAX_TOKENS = 300

# Paths
RECORD_STORAGE_PATH = Path(os.getenv("ALIYA_RECORD_DIR", str(BASE_DIR / ".records")))

# Dialogue Settings
COMMAND_MARKER = "/"
HEALTH_KEYWORDS = ("health", "symptom", "pain", "doctor", "medical")
MIN_QUESTION_LENGTH = 10

# Scheduling
REMINDER_DELAY = timedelta(hours=float(os.getenv("ALIYA_REMINDER_HOURS", "24")))
IDLE_SESSION_TIMEOUT = timedelta(hours=float(os.getenv("ALIYA_IDLE_HOURS", "24")))
REAPER_INTERVAL = timedelta(minutes=float(os.getenv("ALIYA_REAPER_MINUTES", "60")))
SCHEDULER_POLL_SECONDS = float(os.getenv("ALIYA_POLL_SECONDS", "30"))
