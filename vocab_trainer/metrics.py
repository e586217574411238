from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

REQUESTS_TOTAL = Counter(
    "vocab_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
BACKUPS_TOTAL = Counter(
    "vocab_backups_total",
    "Auto-backups written after mutations, by outcome",
    ["status"],
)
INIT_RUNS_TOTAL = Counter(
    "vocab_init_runs_total",
    "Database initialization runs, by population source",
    ["source"],
)


__all__ = [
    "CONTENT_TYPE_LATEST",
    "REQUESTS_TOTAL",
    "BACKUPS_TOTAL",
    "INIT_RUNS_TOTAL",
    "generate_latest",
]
