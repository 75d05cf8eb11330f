"""
Stable app-level constants used by runtime + tests.
Keep this file dependency-free (no rumps/openai/reportlab/etc).
"""

APP_NAME = "CareNotes"
APP_VERSION = "v0.1.0"  # bump when you ship
DEFAULT_OPENAI_MODEL = "gpt-5-mini"

# Used when the header line has no readable client name.
PLACEHOLDER_CLIENT = "Client"

# Bare numbers at or above this are minutes ("75"), below it hours ("1.25").
BARE_NUMBER_MINUTES_THRESHOLD = 10

REPORT_TITLE = "Care Advocacy Report"
REPORT_SIGNATURE = "Gwynne"
