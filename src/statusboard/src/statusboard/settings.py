import os

from dotenv import load_dotenv
from loguru import logger


DOTENV_PATH = os.getenv("DOTENV_PATH", ".env")
if os.path.exists(DOTENV_PATH):
    load_dotenv(dotenv_path=DOTENV_PATH)
else:
    logger.debug(f"No .env file found at {DOTENV_PATH}, using defaults/environment variables")


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def interactive_override() -> bool | None:
    """Return the forced interactivity from STATUSBOARD_INTERACTIVE, or None to auto-detect."""
    value = os.getenv("STATUSBOARD_INTERACTIVE", "").strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    return None


# Output modes
QUIET = _env_flag("STATUSBOARD_QUIET")
NO_PROGRESS = _env_flag("STATUSBOARD_NO_PROGRESS")

# Rendering
SPINNER_INTERVAL = float(os.getenv("STATUSBOARD_SPINNER_INTERVAL", "0.1"))  # seconds between spinner frames
PERIODIC_EVERY = int(os.getenv("STATUSBOARD_PERIODIC_EVERY", "5"))  # CI updates between "Status Update" headers
DEFAULT_TERMINAL_WIDTH = int(os.getenv("STATUSBOARD_DEFAULT_WIDTH", "80"))
MIN_TERMINAL_WIDTH = 3  # room for "..."
MAX_TERMINAL_WIDTH = 120
STANDARD_SEPARATOR_WIDTH = 56

# Logging
LOG_LEVEL = os.getenv("STATUSBOARD_LOG_LEVEL", "INFO").upper()
LOG_JSON = _env_flag("STATUSBOARD_LOG_JSON")
LOG_FILE = os.getenv("STATUSBOARD_LOG_FILE") or None

# Environment variables that mark a CI run. JENKINS_URL only needs to be present.
CI_ENV_VARS = (
    "CI",
    "GITHUB_ACTIONS",
    "CONTINUOUS_INTEGRATION",
    "GITLAB_CI",
    "TRAVIS",
    "CIRCLECI",
    "JENKINS_URL",
    "BUILDKITE",
)
