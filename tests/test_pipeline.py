"""
Test suite for the candidate pipeline state machine.
"""

import pytest

from app.core.exceptions import InvalidStageTransitionError
from app.models.pipeline import PipelineStage, STAGE_ORDER, TERMINAL_STAGES, can_transition, transition


class Stub:
    def __init__(self, stage):
        self.id = 1
        self.pipeline_stage = stage


class TestCanTransition:
    """Legal and illegal stage moves"""

    def test_forward_moves_allowed(self):
        """Every later stage is reachable from an earlier one"""
        for i, current in enumerate(STAGE_ORDER):
            for target in STAGE_ORDER[i + 1:]:
                assert can_transition(current, target)

    def test_skipping_optional_stages(self):
        """A request without questionnaire goes straight to the test task"""
        assert can_transition(PipelineStage.OUTREACH_SENT, PipelineStage.TEST_SENT)

    def test_backward_moves_rejected(self):
        assert not can_transition(PipelineStage.TEST_SENT, PipelineStage.OUTREACH_SENT)
        assert not can_transition(PipelineStage.INTERVIEW, PipelineStage.NEW)

    def test_terminal_reachable_from_any_non_terminal(self):
        for current in STAGE_ORDER:
            for target in TERMINAL_STAGES:
                assert can_transition(current, target)

    def test_terminal_stages_are_absorbing(self):
        for current in TERMINAL_STAGES:
            assert can_transition(current, current)
            for target in list(STAGE_ORDER) + [t for t in TERMINAL_STAGES if t != current]:
                assert not can_transition(current, target)


class TestTransition:
    """Applying a move to a candidate"""

    def test_transition_changes_stage(self):
        candidate = Stub(PipelineStage.ANALYZED)
        assert transition(candidate, PipelineStage.OUTREACH_SENT) is True
        assert candidate.pipeline_stage == PipelineStage.OUTREACH_SENT

    def test_same_stage_is_noop(self):
        candidate = Stub(PipelineStage.TEST_SENT)
        assert transition(candidate, PipelineStage.TEST_SENT) is False
        assert candidate.pipeline_stage == PipelineStage.TEST_SENT

    def test_illegal_transition_raises_and_keeps_stage(self):
        candidate = Stub(PipelineStage.REJECTED)
        with pytest.raises(InvalidStageTransitionError):
            transition(candidate, PipelineStage.INTERVIEW)
        assert candidate.pipeline_stage == PipelineStage.REJECTED

    def test_missing_stage_treated_as_new(self):
        candidate = Stub(None)
        assert transition(candidate, PipelineStage.ANALYZED) is True
