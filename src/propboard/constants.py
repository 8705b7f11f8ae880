"""Shared constants for propboard."""

BRANCH_NAME = "propboard"

ORDER_GAP = 1000.0

# Largest batch a hosted document store accepts; overridable per store and via git config.
DEFAULT_BATCH_LIMIT = 500

DEFAULT_ACTIVATION_DISTANCE = 5

DONE_LIST_NAME = "done"
