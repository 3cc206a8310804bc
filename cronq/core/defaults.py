"""Shared default constants for the cronq engine."""

# Producer-side defaults applied when a task is enqueued without explicit values.
DEFAULT_PRIORITY: int = 5
DEFAULT_MAX_ATTEMPTS: int = 3

# Number of tasks claimed by one run when the caller does not pass a limit.
DEFAULT_BATCH_LIMIT: int = 10

# Flat delay before a failed task becomes eligible again.
DEFAULT_RETRY_DELAY_S: int = 300  # 5 minutes

# Soft deadline for one run_batch invocation. Checked before each task starts.
DEFAULT_RUN_BUDGET_MS: int = 240_000  # 4 minutes

# PROCESSING rows older than this are assumed orphaned by a killed run
# and are reclaimed at the start of the next run.
DEFAULT_STALE_PROCESSING_MS: int = 900_000  # 15 minutes

# Page size for list_tasks().
DEFAULT_LIST_LIMIT: int = 50
