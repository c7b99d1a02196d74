"""Prometheus metrics for PayCrypt.

Defines operational metrics for the ingest pipeline, the ledger gateway,
notifications and the archive.
"""

from prometheus_client import Counter, Gauge, Histogram

# Ingestion
messages_received_total = Counter(
    "paycrypt_messages_received_total",
    "Total inbound messages handed to the pipeline",
    ["channel"]  # channel: smtp|http|replay
)

admission_rejections_total = Counter(
    "paycrypt_admission_rejections_total",
    "Sessions rejected by admission control",
    ["reason"]  # reason: rate_limited|too_many_connections
)

active_smtp_connections = Gauge(
    "paycrypt_active_smtp_connections",
    "Currently open SMTP sessions"
)

pipeline_failures_total = Counter(
    "paycrypt_pipeline_failures_total",
    "Pipeline runs that raised and were reported as temporary failures",
    ["channel"]
)

# Intent extraction and outcomes
intents_total = Counter(
    "paycrypt_intents_total",
    "Intents extracted from inbound messages",
    ["kind"]  # kind: transfer|transfer_with_call_sign|balance_inquiry|none
)

outcomes_total = Counter(
    "paycrypt_outcomes_total",
    "Terminal pipeline outcomes",
    ["outcome"]
)

# Ledger gateway
ledger_calls_total = Counter(
    "paycrypt_ledger_calls_total",
    "Ledger gateway calls",
    ["operation", "status"]  # status: success|error
)

ledger_latency_seconds = Histogram(
    "paycrypt_ledger_latency_seconds",
    "Ledger gateway call latency in seconds",
    ["operation"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

# Notifications
notifications_total = Counter(
    "paycrypt_notifications_total",
    "Outbound notification deliveries",
    ["role", "status"]  # role: sender|recipient, status: sent|failed
)

# Archive
archive_entries = Gauge(
    "paycrypt_archive_entries",
    "Messages currently held in the archive"
)

archive_bytes = Gauge(
    "paycrypt_archive_bytes",
    "Bytes of raw messages currently held in the archive"
)

archive_reclaimed_total = Counter(
    "paycrypt_archive_reclaimed_total",
    "Archive entries deleted by capacity reclamation"
)
