"""Readiness polling library: poller, probe results, probe builders."""

from farmdock.readiness.poller import (
    PollConfig,
    PollOutcome,
    PollResult,
    PollState,
    ProbeResult,
    ProbeStatus,
    poll_until_ready,
)
from farmdock.readiness.probes import (
    ACCEPTED_HTTP_STATUSES,
    command_probe,
    compose_service_liveness,
    container_exec_probe,
    fetch_http_status,
    http_probe,
)

__all__ = [
    "PollConfig",
    "PollOutcome",
    "PollResult",
    "PollState",
    "ProbeResult",
    "ProbeStatus",
    "poll_until_ready",
    "ACCEPTED_HTTP_STATUSES",
    "command_probe",
    "compose_service_liveness",
    "container_exec_probe",
    "fetch_http_status",
    "http_probe",
]
