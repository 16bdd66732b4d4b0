import os

from dotenv import load_dotenv

load_dotenv()

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_BASE_URL = os.getenv("OPENAI_API_BASE_URL", os.getenv("OPENAI_BASE_URL")) # Support both namings
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")

BROWSER_HEADLESS = os.getenv("BROWSER_HEADLESS", "true").lower() != "false"
NAVIGATION_TIMEOUT_MS = int(os.getenv("NAVIGATION_TIMEOUT_MS", "30000"))
STEP_TIMEOUT_MS = int(os.getenv("STEP_TIMEOUT_MS", "10000"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "")


def check_api_key() -> bool:
    return bool(OPENAI_API_KEY)
