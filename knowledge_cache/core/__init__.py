"""Cache configuration, errors, admission, statistics and orchestration."""
