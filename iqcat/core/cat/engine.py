"""
SessionController: orchestrator for one adaptive test session.

Drives the answer -> re-estimate -> stop-check -> select-next loop and owns
the session state:

    NOT_STARTED -> IN_PROGRESS <-> PAUSED
                        |
                        v
                    COMPLETED

Every answer is processed as a single transaction: the response is scored at
the pre-answer ability, appended, theta is re-estimated by EAP over all
responses, coverage is updated and the stop conditions are evaluated before
the next item is chosen. Once COMPLETED the session is read-only and every
mutating call raises ``SessionStateError``.

Sessions share nothing mutable except an optional ``ExposureMonitor``, so
independent sessions may run in parallel threads.
"""

import logging
import random
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from iqcat.core.cat import irt_model
from iqcat.core.cat.ability_estimation import AbilityEstimate, AbilityEstimator
from iqcat.core.cat.content_balancing import build_domain_targets, remaining_quota
from iqcat.core.cat.exposure_control import ExposureMonitor
from iqcat.core.cat.item_selection import ItemSelector
from iqcat.core.cat.score_conversion import (
    ScoreReport,
    ScoreReporter,
    effective_time_limit_seconds,
)
from iqcat.core.cat.stopping_rules import check_stopping_criteria
from iqcat.core.config import CATConfig
from iqcat.core.exceptions import SessionStateError
from iqcat.core.item_bank import Item, load_item_pool
from iqcat.core.logging_config import session_id_context
from iqcat.domain_types import (
    EstimationMethod,
    QuestionCategory,
    SelectionMethod,
    SessionState,
    StopReason,
    SuspicionSeverity,
)

logger = logging.getLogger(__name__)

# SE reported before any response has been scored
INITIAL_STANDARD_ERROR = 1.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Response:
    """A scored answer. Created once per answered item, immutable thereafter."""

    item_id: str
    category: QuestionCategory
    selected_option: Optional[int]
    is_correct: bool
    response_time_ms: float
    ability_before: float
    ability_after: float
    probability_correct_at_answer_time: float
    information_value: float
    standard_error_before: float
    standard_error_after: float
    timed_out: bool = False
    suspicion: Optional[SuspicionSeverity] = None
    answered_at: datetime = field(default_factory=utc_now)


@dataclass
class Session:
    """State of one adaptive test. Mutated only by its SessionController."""

    session_id: str
    theta: float
    standard_error: float
    remaining_global_time: float
    domain_target: Dict[QuestionCategory, int] = field(default_factory=dict)
    domain_coverage: Dict[QuestionCategory, int] = field(default_factory=dict)
    responses: List[Response] = field(default_factory=list)
    # Estimates recorded after each response (append-only)
    theta_history: List[float] = field(default_factory=list)
    se_history: List[float] = field(default_factory=list)
    estimates: List[AbilityEstimate] = field(default_factory=list)
    state: SessionState = SessionState.NOT_STARTED
    current_item: Optional[Item] = None
    stop_reason: Optional[StopReason] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def answered_ids(self) -> List[str]:
        return [r.item_id for r in self.responses]

    @property
    def items_administered(self) -> int:
        return len(self.responses)

    @property
    def correct_count(self) -> int:
        return sum(1 for r in self.responses if r.is_correct)


@dataclass
class CATStepResult:
    """Result after processing a single response."""

    response: Response
    estimate: AbilityEstimate
    items_administered: int
    should_stop: bool
    stop_reason: Optional[StopReason]
    next_item: Optional[Item]


class SessionController:
    """
    Orchestrator for a single Computerized Adaptive Testing session.

    Manages:
    - Item selection (strategy, content balancing, exposure control)
    - Response processing and ability re-estimation using EAP
    - Stopping criteria evaluation
    - Pause/resume and the global time budget
    - Final score report on completion

    Args:
        pool: Calibrated items (validated on construction).
        config: Session configuration; defaults to ``CATConfig()``. Build it with
            ``load_config`` (or ``CATConfig.from_settings``) to get bad values
            reported as ``InvalidConfigurationError``. Constructing
            ``CATConfig`` directly raises pydantic's ``ValidationError`` instead,
            before any controller exists.
        session_id: Identifier for logs and export; a UUID when omitted.
        clock: Monotonic clock in seconds, used to time responses.
        monitor: Optional ExposureMonitor shared with other sessions.
    """

    def __init__(
        self,
        pool: Iterable[Item],
        config: Optional[CATConfig] = None,
        *,
        session_id: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
        monitor: Optional[ExposureMonitor] = None,
    ):
        self.config = config or CATConfig()
        self.pool: List[Item] = load_item_pool(pool)
        self.items: Dict[str, Item] = {item.id: item for item in self.pool}
        self._clock = clock
        self._rng = random.Random(self.config.random_seed)

        self.estimator = AbilityEstimator.from_config(self.config, EstimationMethod.EAP)
        self.selector = ItemSelector.from_config(self.config, rng=self._rng, monitor=monitor)
        self.reporter = ScoreReporter(self.config)

        domain_target: Dict[QuestionCategory, int] = {}
        if self.config.content_balancing:
            domain_target = build_domain_targets(
                self.config.total_questions,
                [item.category for item in self.pool],
                self.config.domain_weights,
            )

        self.session = Session(
            session_id=session_id or str(uuid.uuid4()),
            theta=self.config.starting_ability,
            standard_error=INITIAL_STANDARD_ERROR,
            remaining_global_time=self.config.global_time_limit_seconds,
            domain_target=domain_target,
        )
        self._report: Optional[ScoreReport] = None
        self._presented_at: Optional[float] = None
        self._paused_at: Optional[float] = None

    @contextmanager
    def _session_context(self) -> Iterator[None]:
        token = session_id_context.set(self.session.session_id)
        try:
            yield
        finally:
            session_id_context.reset(token)

    def _require_state(self, *allowed: SessionState) -> None:
        if self.session.state not in allowed:
            raise SessionStateError(
                f"Operation not allowed in state {self.session.state.value}",
                context={
                    "session_id": self.session.session_id,
                    "allowed": [s.value for s in allowed],
                },
            )

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def current_item(self) -> Optional[Item]:
        return self.session.current_item

    @property
    def report(self) -> ScoreReport:
        """The final score report; available once the session is COMPLETED."""
        if self._report is None:
            raise SessionStateError(
                "Score report is only available for completed sessions",
                context={"session_id": self.session.session_id},
            )
        return self._report

    def _domain_remaining(self) -> Optional[Dict[QuestionCategory, int]]:
        if not self.config.content_balancing:
            return None
        return remaining_quota(self.session.domain_target, self.session.domain_coverage)

    def _scored(self) -> List[Tuple[Item, bool]]:
        return [(self.items[r.item_id], r.is_correct) for r in self.session.responses]

    def _select_next(self) -> Optional[Item]:
        posterior = None
        if self.selector.strategy.method != SelectionMethod.MAX_INFO:
            # Prior alone before the first answer
            posterior = self.estimator.posterior(self._scored())
        return self.selector.select(
            self.session.theta,
            self.pool,
            self.session.answered_ids,
            self._domain_remaining(),
            standard_error=self.session.standard_error,
            posterior=posterior,
        )

    def _present(self, item: Item) -> None:
        self.session.current_item = item
        self._presented_at = self._clock()

    def start(self) -> Optional[Item]:
        """
        Begin the test and select the first item.

        Returns:
            The first item, or None if the pool is empty (the session is then
            already COMPLETED with reason ``pool_exhausted``).
        """
        with self._session_context():
            self._require_state(SessionState.NOT_STARTED)
            self.session.state = SessionState.IN_PROGRESS
            self.session.started_at = utc_now()

            logger.info(
                f"Started session {self.session.session_id}: pool={len(self.pool)}, "
                f"total_questions={self.config.total_questions}, "
                f"method={self.config.selection_method.value}",
                extra={"theta": self.session.theta},
            )

            first = self._select_next()
            if first is None:
                self._complete(StopReason.POOL_EXHAUSTED)
                return None
            self._present(first)
            return first

    def submit_answer(
        self,
        selected_option: Optional[int] = None,
        *,
        response_time_ms: Optional[float] = None,
        is_correct: Optional[bool] = None,
        suspicion: Optional[SuspicionSeverity] = None,
    ) -> CATStepResult:
        """
        Record the answer to the current item and advance the session.

        Args:
            selected_option: Option chosen by the test taker.
            response_time_ms: Measured response time; taken from the clock
                (excluding paused time) when omitted.
            is_correct: Scoring override for items without ``correct_option``.
            suspicion: Optional cheat-detection annotation, stored only.

        Raises:
            SessionStateError: If the session is not IN_PROGRESS.
            ValueError: If correctness cannot be determined.
        """
        with self._session_context():
            self._require_state(SessionState.IN_PROGRESS)
            item = self.session.current_item
            assert item is not None

            if is_correct is None:
                if item.correct_option is None:
                    raise ValueError(
                        f"Item {item.id} has no correct_option; pass is_correct explicitly"
                    )
                is_correct = selected_option is not None and selected_option == item.correct_option

            if response_time_ms is None:
                response_time_ms = self._elapsed_ms()
            if response_time_ms < 0:
                raise ValueError(f"response_time_ms must be non-negative, got {response_time_ms}")

            return self._record(
                item,
                selected_option=selected_option,
                is_correct=is_correct,
                response_time_ms=response_time_ms,
                timed_out=False,
                suspicion=suspicion,
            )

    def expire_current_item(self) -> CATStepResult:
        """Score the current item as an incorrect, timed-out response."""
        with self._session_context():
            self._require_state(SessionState.IN_PROGRESS)
            item = self.session.current_item
            assert item is not None
            limit_seconds = effective_time_limit_seconds(item, self.config)
            logger.debug(f"Item {item.id} timed out after {limit_seconds:.0f}s")
            return self._record(
                item,
                selected_option=None,
                is_correct=False,
                response_time_ms=limit_seconds * 1000.0,
                timed_out=True,
                suspicion=None,
            )

    def _elapsed_ms(self) -> float:
        if self._presented_at is None:
            return 0.0
        return max(0.0, (self._clock() - self._presented_at) * 1000.0)

    def _record(
        self,
        item: Item,
        *,
        selected_option: Optional[int],
        is_correct: bool,
        response_time_ms: float,
        timed_out: bool,
        suspicion: Optional[SuspicionSeverity],
    ) -> CATStepResult:
        session = self.session
        theta_before = session.theta
        se_before = session.standard_error

        p_correct = irt_model.probability(theta_before, item)
        info = irt_model.information(theta_before, item)

        scored = self._scored()
        scored.append((item, is_correct))
        estimate = self.estimator.estimate(scored)

        response = Response(
            item_id=item.id,
            category=item.category,
            selected_option=selected_option,
            is_correct=is_correct,
            response_time_ms=float(response_time_ms),
            ability_before=theta_before,
            ability_after=estimate.theta,
            probability_correct_at_answer_time=p_correct,
            information_value=info,
            standard_error_before=se_before,
            standard_error_after=estimate.standard_error,
            timed_out=timed_out,
            suspicion=suspicion,
        )

        session.responses.append(response)
        session.theta = estimate.theta
        session.standard_error = estimate.standard_error
        session.theta_history.append(estimate.theta)
        session.se_history.append(estimate.standard_error)
        session.estimates.append(estimate)
        session.domain_coverage[item.category] = (
            session.domain_coverage.get(item.category, 0) + 1
        )
        session.current_item = None

        logger.debug(
            f"Session {session.session_id}: response #{session.items_administered} "
            f"({item.id}, correct={is_correct}, timed_out={timed_out}) -> "
            f"theta={estimate.theta:.3f}, SE={estimate.standard_error:.3f}",
            extra={
                "theta": estimate.theta,
                "standard_error": estimate.standard_error,
                "item_id": item.id,
            },
        )

        decision = check_stopping_criteria(
            num_items=session.items_administered,
            se=session.standard_error,
            remaining_time=session.remaining_global_time,
            total_questions=self.config.total_questions,
            target_se=self.config.target_standard_error,
        )

        next_item: Optional[Item] = None
        if not decision.should_stop:
            next_item = self._select_next()
            if next_item is None:
                decision = check_stopping_criteria(
                    num_items=session.items_administered,
                    se=session.standard_error,
                    remaining_time=session.remaining_global_time,
                    total_questions=self.config.total_questions,
                    target_se=self.config.target_standard_error,
                    next_item_available=False,
                )

        if decision.should_stop:
            assert decision.reason is not None
            self._complete(decision.reason)
        else:
            assert next_item is not None
            self._present(next_item)

        return CATStepResult(
            response=response,
            estimate=estimate,
            items_administered=session.items_administered,
            should_stop=decision.should_stop,
            stop_reason=decision.reason,
            next_item=next_item,
        )

    def pause(self) -> None:
        """Suspend the global timer. Theta and history are untouched."""
        with self._session_context():
            self._require_state(SessionState.IN_PROGRESS)
            self.session.state = SessionState.PAUSED
            self._paused_at = self._clock()
            logger.info(f"Paused session {self.session.session_id}")

    def resume(self) -> None:
        with self._session_context():
            self._require_state(SessionState.PAUSED)
            if self._paused_at is not None and self._presented_at is not None:
                # Paused time does not count toward the response time
                self._presented_at += self._clock() - self._paused_at
            self._paused_at = None
            self.session.state = SessionState.IN_PROGRESS
            logger.info(f"Resumed session {self.session.session_id}")

    def tick(self, elapsed_seconds: float) -> float:
        """
        Advance the global timer.

        Time only elapses while IN_PROGRESS; ticks in NOT_STARTED or PAUSED are
        ignored. Exhausting the budget completes the session with
        ``time_expired``.

        Returns:
            Remaining global time in seconds.

        Raises:
            ValueError: If elapsed_seconds is negative.
            SessionStateError: If the session is already COMPLETED.
        """
        if elapsed_seconds < 0:
            raise ValueError(f"elapsed_seconds must be non-negative, got {elapsed_seconds}")
        with self._session_context():
            self._require_state(
                SessionState.NOT_STARTED, SessionState.IN_PROGRESS, SessionState.PAUSED
            )
            if self.session.state == SessionState.IN_PROGRESS:
                self.session.remaining_global_time = max(
                    0.0, self.session.remaining_global_time - elapsed_seconds
                )
                if self.session.remaining_global_time <= 0:
                    self._complete(StopReason.TIME_EXPIRED)
            return self.session.remaining_global_time

    def force_stop(self) -> ScoreReport:
        """External hard stop: complete immediately with reason ``forced``."""
        with self._session_context():
            self._require_state(
                SessionState.NOT_STARTED, SessionState.IN_PROGRESS, SessionState.PAUSED
            )
            self._complete(StopReason.FORCED)
            return self.report

    def _complete(self, reason: StopReason) -> None:
        session = self.session
        session.state = SessionState.COMPLETED
        session.stop_reason = reason
        session.current_item = None
        session.completed_at = utc_now()
        self._presented_at = None
        self._paused_at = None

        self._report = self.reporter.build_report(session, self.items)

        logger.info(
            f"Session {session.session_id} completed: reason={reason.value}, "
            f"theta={session.theta:.3f}, SE={session.standard_error:.3f}, "
            f"IQ={self._report.iq}, items={session.items_administered}, "
            f"correct={session.correct_count}",
            extra={
                "stop_reason": reason.value,
                "theta": session.theta,
                "standard_error": session.standard_error,
            },
        )


def run_session(
    pool: Sequence[Item],
    answer: Callable[[Item], bool],
    config: Optional[CATConfig] = None,
    **kwargs,
) -> SessionController:
    """
    Drive a session to completion with a scoring callback.

    Args:
        pool: Item pool.
        answer: Returns whether the item is answered correctly.
        config: Session configuration.
        **kwargs: Passed to ``SessionController``.

    Returns:
        The completed controller (``controller.report`` holds the result).
    """
    controller = SessionController(pool, config, **kwargs)
    item = controller.start()
    while item is not None:
        item = controller.submit_answer(is_correct=answer(item), response_time_ms=0.0).next_item
    return controller
