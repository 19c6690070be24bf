"""
Tests for the pydantic export schemas.
"""

import pytest

from iqcat.core.cat.engine import SessionController
from iqcat.domain_types import SessionState, StopReason, SuspicionSeverity
from iqcat.schemas import ScoreReportSchema, SessionExportSchema, export_session


@pytest.fixture
def completed(simulated_pool, long_test_config):
    controller = SessionController(simulated_pool, long_test_config, session_id="export-1")
    controller.start()
    for index in range(6):
        controller.submit_answer(
            is_correct=index % 2 == 0,
            response_time_ms=3000.0 + index,
            suspicion=SuspicionSeverity.MEDIUM if index == 3 else None,
        )
    return controller


class TestExportSession:
    def test_completed_session_with_report(self, completed):
        export = export_session(completed.session, completed.report)
        assert isinstance(export, SessionExportSchema)
        assert export.session_id == "export-1"
        assert export.state == SessionState.COMPLETED
        assert export.stop_reason == StopReason.MAX_ITEMS
        assert len(export.responses) == 6
        assert len(export.estimates) == 6
        assert export.report is not None
        assert export.report.iq == completed.report.iq

    def test_model_dump_is_serializable(self, completed):
        data = export_session(completed.session, completed.report).model_dump(mode="json")
        assert data["state"] == "completed"
        assert data["stop_reason"] == "max_items"
        assert data["responses"][3]["suspicion"] == "medium"
        assert data["responses"][0]["response_time_ms"] == 3000.0
        assert data["report"]["ability_progression"] == list(completed.session.theta_history)
        assert isinstance(data["responses"][0]["answered_at"], str)

    def test_json_round_trip(self, completed):
        export = export_session(completed.session, completed.report)
        restored = SessionExportSchema.model_validate_json(export.model_dump_json())
        assert restored == export

    def test_in_progress_session_without_report(self, simulated_pool):
        controller = SessionController(simulated_pool)
        controller.start()
        controller.submit_answer(is_correct=True, response_time_ms=2500.0)
        export = export_session(controller.session)
        assert export.state == SessionState.IN_PROGRESS
        assert export.report is None
        assert export.stop_reason is None
        assert export.completed_at is None


class TestScoreReportSchema:
    def test_from_report(self, completed):
        schema = ScoreReportSchema.model_validate(completed.report)
        assert schema.confidence_interval.level == 0.95
        assert schema.classification == completed.report.classification
        assert set(schema.domain_analysis) == set(completed.report.domain_analysis)
        assert schema.flagged_responses == 1
        assert 0.0 <= schema.reliability.cronbach_alpha <= 1.0
        reliability = completed.report.reliability
        assert schema.reliability.meets_alpha_target is reliability.meets_alpha_target
