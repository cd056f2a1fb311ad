"""Constants used across shellfleet.

Internal values that are not user-configurable.
"""

# Refresh cadence defaults (overridable through the dashboard config section)
DEFAULT_REFRESH_INTERVAL_S = 2.0
DEFAULT_KILL_REFRESH_DELAY_S = 0.5  # Let process-death signals land before re-classifying
DEFAULT_OUTPUT_REFRESH_DEBOUNCE_S = 0.25
DEFAULT_OUTPUT_POLL_INTERVAL_S = 1.0  # How often hosted tmux screens are checked for new output

# Placeholder shown for absent mode / activity values
MISSING_VALUE = "-"

# Traffic log defaults
DEFAULT_TRAFFIC_MAX_LINES = 2000

# Display name template: "{prefix} Agent @ {project}"
DISPLAY_NAME_SEPARATOR = " @ "
DISPLAY_NAME_AGENT_SUFFIX = " Agent"

ENV_CONFIG_PATH = "SHELLFLEET_CONFIG"
ENV_LOG_LEVEL = "SHELLFLEET_LOG_LEVEL"
ENV_DOTENV_PATH = "SHELLFLEET_ENV_PATH"
