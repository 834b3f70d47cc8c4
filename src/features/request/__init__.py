"""Request orchestration: attempts, retries, redirects and outcomes."""

from src.features.request.attempt import AttemptRunner, FollowUp
from src.features.request.body import BodySource, FormBody, ReplayableBody
from src.features.request.cancellation import CancellationSignal
from src.features.request.classifier import Decision, ResponseClassifier
from src.features.request.metrics import RequestMetrics
from src.features.request.models import (
    AttemptState,
    Budget,
    Failure,
    Outcome,
    RequestOptions,
    RawResponse,
    Success,
    Target,
    budget_allows,
    consume_budget,
)
from src.features.request.orchestrator import RequestOrchestrator
from src.features.request.resolver import OutcomeResolver
from src.features.request.state_machine import (
    AttemptMachine,
    AttemptPhase,
    AttemptTransitionError,
)


__all__ = [
    # Orchestration
    "RequestOrchestrator",
    "AttemptRunner",
    "FollowUp",
    "OutcomeResolver",
    "ResponseClassifier",
    "Decision",
    "AttemptMachine",
    "AttemptPhase",
    "AttemptTransitionError",
    # Models
    "AttemptState",
    "Budget",
    "Failure",
    "Outcome",
    "RequestOptions",
    "RawResponse",
    "Success",
    "Target",
    "budget_allows",
    "consume_budget",
    # Bodies and cancellation
    "BodySource",
    "FormBody",
    "ReplayableBody",
    "CancellationSignal",
    # Metrics
    "RequestMetrics",
]
