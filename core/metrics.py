"""
Core metrics collection for Tierwise using Prometheus
"""
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, Info, generate_latest

from core.config import settings

# Create a global registry for the application
REGISTRY = CollectorRegistry()

# Application info
app_info = Info("tierwise_app", "Tierwise application information", registry=REGISTRY)
app_info.info({"version": settings.app_version, "environment": settings.environment})

# Admission control
quota_checks = Counter(
    "tierwise_quota_checks_total",
    "Total quota gate checks",
    ["action_class", "identity_kind", "outcome"],
    registry=REGISTRY,
)

# Reasoning service
reasoning_requests = Counter(
    "tierwise_reasoning_requests_total",
    "Total calls to the external reasoning service",
    ["status"],
    registry=REGISTRY,
)

reasoning_duration = Histogram(
    "tierwise_reasoning_duration_seconds",
    "Reasoning service call duration in seconds",
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
    registry=REGISTRY,
)

# Post-processing
formula_evaluations = Counter(
    "tierwise_formula_evaluations_total",
    "Total formula metric evaluations",
    ["status"],
    registry=REGISTRY,
)

rankings = Counter(
    "tierwise_rankings_total",
    "Total rankings built",
    ["tier_policy", "status"],
    registry=REGISTRY,
)

# Error metrics
error_count = Counter(
    "tierwise_errors_total",
    "Total number of errors",
    ["error_type", "domain"],
    registry=REGISTRY,
)


def record_error(error: Exception, domain: str) -> None:
    """Count an error by its class name"""
    error_count.labels(error_type=type(error).__name__, domain=domain).inc()


def get_metrics_response() -> tuple:
    """Render the registry in Prometheus exposition format"""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
