"""Infrastructure and technical constants."""

from typing import Final

DEFAULT_DATABASE_URL: Final = "sqlite:///./tripfood.db"
DEFAULT_DB_NAME: Final = "tripfood"

LOG_DIRECTORY: Final = "logs"
LOG_FILE_NAME: Final = "tripfood.log"

# Longest stored value rendered into a log line
MAX_LOGGED_VALUE_LENGTH: Final = 100
