"""Prometheus metrics for plan writes and generation job polling."""

from prometheus_client import Counter, Histogram

# Plan write metrics
trip_plan_writes_total = Counter(
    "trip_plan_writes_total",
    "Total trip plan writes",
    ["mode", "outcome"],
)

trip_plan_write_latency_ms = Histogram(
    "trip_plan_write_latency_ms",
    "Trip plan write latency in milliseconds",
    ["mode"],
    buckets=[5, 10, 25, 50, 100, 250, 500, 1000, 2500],
)

trip_plan_revisions_restored_total = Counter(
    "trip_plan_revisions_restored_total",
    "Total trip plan revisions restored",
)

# Generation job metrics
generation_job_polls_total = Counter(
    "generation_job_polls_total",
    "Total generation job status polls",
    ["outcome"],
)

generation_job_transitions_total = Counter(
    "generation_job_transitions_total",
    "Total generation job transitions applied",
    ["transition"],
)


class PrometheusPlanMetrics:
    """Prometheus-based metrics for trip plan persistence and job sync."""

    def record_write(self, mode: str, outcome: str, latency_ms: float | None = None) -> None:
        """Record a plan write outcome and, when known, its latency."""
        trip_plan_writes_total.labels(mode=mode, outcome=outcome).inc()
        if latency_ms is not None:
            trip_plan_write_latency_ms.labels(mode=mode).observe(latency_ms)

    def inc_restore(self) -> None:
        trip_plan_revisions_restored_total.inc()

    def inc_poll(self, outcome: str) -> None:
        generation_job_polls_total.labels(outcome=outcome).inc()

    def inc_transition(self, transition: str) -> None:
        generation_job_transitions_total.labels(transition=transition).inc()


plan_metrics = PrometheusPlanMetrics()
