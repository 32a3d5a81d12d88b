"""Constants for the command runner."""

import os

# Model used for fix analysis when AIBUDDY_MODEL is not set
DEFAULT_MODEL = "anthropic/claude-sonnet-4.5"

# Fix-analysis rounds after the first execution attempt
MAX_ERROR_RETRIES = 3

# Ring buffer size for terminal output lines
DEFAULT_TERMINAL_LINES = 500

DEFAULT_COMMAND_TIMEOUT_S = float(os.getenv("AIBUDDY_COMMAND_TIMEOUT_S", "120"))
DEFAULT_AI_TIMEOUT_S = 300.0

# Captured output is clipped before it goes into prompts and summaries
MAX_ERROR_OUTPUT_CHARS = 2000

AUTO_STASH_MESSAGE = "aibuddy-auto-stash"
