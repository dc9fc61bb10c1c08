# Base API prefix (all HTTP routes are served under /api/*)
API_PREFIX = "/api"

# Router paths (relative to API_PREFIX)
CLEANUP_RULE_PATH = "/cleanup-rule"
SYNC_JOBS_PREFIX = "/sync-jobs"
