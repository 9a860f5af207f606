"""Shared defaults for taskcascade."""

DEFAULT_CONFIG_PATH = "config.yaml"
DEFAULT_EXECUTOR_TIMEOUT = 10.0
DEFAULT_EXECUTOR_RETRIES = 2
DEFAULT_REDIS_QUEUE = "taskcascade:executions"

# Fields copied from a template onto an existing task by template sync.
SYNCABLE_FIELDS = ("name", "dependencies", "auto_executable", "sort_order")
