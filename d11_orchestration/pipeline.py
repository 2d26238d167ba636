"""
D11 Orchestration - ranking request flow

Runs one ranking request end to end with a fixed ordering:

1. Parse the request and validate every formula (no quota is consumed for
   bad input).
2. Admit the request through the quota gate: scoring, then web when asked.
3. Call the reasoning service, with web search only if it was admitted.
4. Post-process the result locally into the final ranking.

The only suspension points are the quota check and the reasoning call.
Quota consumed for an attempt is never refunded, even if a later step fails.
"""
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from core.config import get_settings
from core.exceptions import TierwiseError
from core.logging import get_logger
from core.metrics import rankings, record_error
from d0_gateway.exceptions import QuotaExceededError
from d0_gateway.quota import QuotaGate, rejection_headers
from d0_gateway.reasoning_client import ReasoningService
from d0_gateway.types import Identity, QuotaAdmission
from d5_scoring.formula_validator import validate_metric_formulas
from d5_scoring.ranking import RankingPolicy, build_ranking
from d5_scoring.schemas import RankingRequest, RankingResponse, parse_ranking_request

logger = get_logger(__name__)


@dataclass
class RankingOutcome:
    """Result of one flow run: a ranking or a structured error, plus quota headers"""

    run_id: str
    response: Optional[RankingResponse] = None
    error: Optional[TierwiseError] = None
    headers: Dict[str, str] = field(default_factory=dict)
    admission: Optional[QuotaAdmission] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status_code(self) -> int:
        return 200 if self.error is None else self.error.status_code

    def to_payload(self) -> Dict[str, Any]:
        if self.error is not None:
            return {**self.error.to_dict(), "category": self.error.error_category}
        return self.response.to_payload()


class RankingFlow:
    """Quota, reasoning call and local post-processing for one request"""

    def __init__(
        self,
        quota_gate: QuotaGate,
        reasoning: ReasoningService,
        policy: Optional[RankingPolicy] = None,
    ):
        self.quota_gate = quota_gate
        self.reasoning = reasoning
        self.policy = policy or RankingPolicy.from_settings(get_settings())

    async def execute(self, request: Union[RankingRequest, Dict[str, Any]], identity: Identity) -> RankingOutcome:
        """
        Run the flow, raising on failure

        Raises:
            ValidationError: Bad request or formula; raised before any quota is used
            QuotaExceededError: Budget exhausted; the reasoning service is not called
            QuotaStoreError: Counter store unavailable; the reasoning service is not called
            ReasoningServiceError: The reasoning call failed; quota stays consumed
        """
        outcome = RankingOutcome(run_id=str(uuid.uuid4()))
        await self._run(request, identity, outcome)
        return outcome

    async def _run(
        self, request: Union[RankingRequest, Dict[str, Any]], identity: Identity, outcome: RankingOutcome
    ) -> None:
        flow_logger = logger.with_context(run_id=outcome.run_id)

        if not isinstance(request, RankingRequest):
            request = parse_ranking_request(request)
        validate_metric_formulas(request.metrics)

        admission = await self.quota_gate.admit_request(identity, use_web=request.options.use_web_search)
        outcome.admission = admission
        outcome.headers = admission.to_headers()
        flow_logger.info(
            f"Admitted ranking of {len(request.candidates)} candidates",
            extra={"identity_kind": identity.kind.value, "use_web": admission.use_web},
        )

        result = await self.reasoning.score(request, use_web=admission.use_web)
        outcome.response = build_ranking(request, result, self.policy)

    async def run(self, request: Union[RankingRequest, Dict[str, Any]], identity: Identity) -> RankingOutcome:
        """
        Run the flow and fold any Tierwise error into the outcome

        Quota headers are kept on failures after admission, and a quota
        rejection reports the exhausted class.
        """
        outcome = RankingOutcome(run_id=str(uuid.uuid4()))
        try:
            await self._run(request, identity, outcome)
        except QuotaExceededError as e:
            self._fail(outcome, e, "d0")
            outcome.headers = rejection_headers(e)
        except TierwiseError as e:
            self._fail(outcome, e, "d11")
        return outcome

    def _fail(self, outcome: RankingOutcome, error: TierwiseError, domain: str) -> None:
        outcome.error = error
        outcome.response = None
        record_error(error, domain=domain)
        rankings.labels(tier_policy="none", status="failed").inc()
        logger.warning(
            f"Ranking failed: {error.error_code}: {error.message}",
            extra={"run_id": outcome.run_id, "category": error.error_category},
        )
