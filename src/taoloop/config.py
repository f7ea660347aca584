"""Configuration constants.

Centralizes magic numbers and default values shared by the agent, memory and CLI.
"""


class LogLevel:
    """Numeric severities for the level strings passed to debug callbacks.

    A message is shown when its level is at or above the chosen threshold.
    """

    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40

    @classmethod
    def from_string(cls, level_str: str) -> int:
        """Convert 'debug', 'info', 'warning' or 'error'. Unknown names map to DEBUG."""
        value = getattr(cls, level_str.upper(), None)
        return value if isinstance(value, int) else cls.DEBUG

    @classmethod
    def is_enabled(cls, level: str, threshold: str) -> bool:
        """Whether a message at ``level`` passes a ``threshold`` filter."""
        return cls.from_string(level) >= cls.from_string(threshold)


# Agent loop limits
DEFAULT_MAX_STEPS = 10  # Tool executions before giving up
DEFAULT_MAX_HISTORY = 20  # Messages from memory injected into each task

# Output truncation limits
MAX_OBSERVATION_LENGTH = 4000  # Characters of tool output fed back to the LLM
LOG_PREVIEW_LENGTH = 150  # Characters shown in debug previews

# Concurrency defaults
DEFAULT_MAX_WORKERS = 4

# Canned reply returned when a turn fails
FALLBACK_RESPONSE = (
    "Sorry, something went wrong while handling your request. "
    "Please try again in a moment."
)
