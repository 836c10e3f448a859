"""Tests for the traffic-light triage policy."""

import pytest

from sift.common.schemas import InboxStatus
from sift.ingest.triage import AUTO_COMMIT_THRESHOLD, Commit, Hold, TriageSignals, route


class TestCommit:
    def test_confident_clean_proposal_commits(self):
        assert route(TriageSignals(confidence_score=0.95)) == Commit()

    def test_missing_fields_alone_does_not_block_commit(self):
        result = route(TriageSignals(confidence_score=0.95, missing_info=["location"]))
        assert isinstance(result, Commit)

    def test_threshold_is_exclusive(self):
        assert AUTO_COMMIT_THRESHOLD == 0.9
        result = route(TriageSignals(confidence_score=0.9))
        assert isinstance(result, Hold)
        # Exactly 0.9 is not low confidence either
        assert result.flag_reason is None
        assert result.status == InboxStatus.PENDING

    @pytest.mark.parametrize("score", [0.0, 0.5, 0.89, 0.9])
    def test_at_or_below_threshold_holds(self, score):
        assert isinstance(route(TriageSignals(confidence_score=score)), Hold)


class TestHold:
    def test_low_confidence(self):
        result = route(TriageSignals(confidence_score=0.5))
        assert result == Hold(status=InboxStatus.PENDING, flag_reason="low_confidence")

    def test_conflict_always_holds(self):
        result = route(TriageSignals(confidence_score=0.99, has_conflict=True))
        assert result == Hold(status=InboxStatus.PENDING, flag_reason="conflict_detected")

    def test_missing_start_forces_needs_info(self):
        result = route(TriageSignals(confidence_score=0.99, missing_start_date=True))
        assert result.status == InboxStatus.NEEDS_INFO
        assert result.flag_reason == "missing_context"

    def test_missing_start_and_low_confidence(self):
        result = route(TriageSignals(confidence_score=0.4, missing_start_date=True))
        assert result.status == InboxStatus.NEEDS_INFO
        assert result.flag_reason == "low_confidence, missing_context"

    def test_reasons_joined_in_order(self):
        result = route(TriageSignals(
            confidence_score=0.3,
            has_conflict=True,
            missing_start_date=True,
            missing_info=["start_time", "location"],
        ))
        assert result.flag_reason == "low_confidence, conflict_detected, missing_context, missing_fields"
        assert result.status == InboxStatus.NEEDS_INFO

    def test_missing_fields_appended_when_held(self):
        result = route(TriageSignals(confidence_score=0.6, missing_info=["location"]))
        assert result.flag_reason == "low_confidence, missing_fields"
