"""Prometheus metrics for the listing tracker."""

import time

from prometheus_client import Counter, Gauge, Histogram, Info

# Application info
app_info = Info("listing_tracker", "Listing tracker application info")
app_info.info({"version": "0.1.0", "name": "listing-tracker"})

# Check metrics
checks_total = Counter(
    "listing_checks_total",
    "Total number of business checks by outcome",
    ["outcome"],  # checked, skipped, failed
)

check_errors_total = Counter(
    "listing_check_errors_total",
    "Workflow-level check failures by error code",
    ["error_code"],
)

observation_errors_total = Counter(
    "listing_observation_errors_total",
    "Observations written with a page-level error code",
    ["error_code"],
)

# Extraction metrics
extraction_duration_seconds = Histogram(
    "listing_extraction_duration_seconds",
    "Time spent extracting one listing page",
    buckets=[1.0, 2.0, 5.0, 10.0, 20.0, 30.0, 60.0],
)

field_extractions_total = Counter(
    "listing_field_extractions_total",
    "Field extraction results by field and winning strategy",
    ["field", "strategy"],  # strategy is "none" on a miss, "timeout" on a race loss
)

screenshots_total = Counter(
    "listing_screenshots_total",
    "Screenshot capture attempts",
    ["status"],
)

# Session metrics
login_checks_total = Counter(
    "listing_login_checks_total",
    "Session status checks by result",
    ["result"],  # authenticated, anonymous, error
)

# Run gate metrics
run_lock_contention_total = Counter(
    "listing_run_lock_contention_total",
    "Lock acquisitions refused because another run holds the lock",
)

businesses_tracked = Gauge(
    "listing_businesses_tracked",
    "Number of businesses currently tracked",
)

# Scheduler metrics
scheduler_runs_total = Counter(
    "scheduler_runs_total",
    "Total number of scheduler runs",
    ["job_type", "status"],
)

scheduler_last_run_timestamp = Gauge(
    "scheduler_last_run_timestamp",
    "Timestamp of last scheduler run",
    ["job_type"],
)


def record_field(field: str, strategy: str | None):
    """Record which strategy resolved a field (or that none did)."""
    field_extractions_total.labels(field=field, strategy=strategy or "none").inc()


def record_check(outcome: str, error_code: str | None = None):
    """Record the outcome of one business check."""
    checks_total.labels(outcome=outcome).inc()
    if error_code:
        check_errors_total.labels(error_code=error_code).inc()


def record_scheduler_run(job_type: str, success: bool):
    """Record a scheduler job run."""
    status = "success" if success else "error"
    scheduler_runs_total.labels(job_type=job_type, status=status).inc()
    scheduler_last_run_timestamp.labels(job_type=job_type).set(time.time())
