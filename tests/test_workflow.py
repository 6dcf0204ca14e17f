"""
Unit tests for workflow.py - stage policy.
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import Stage, Turn
from workflow import (
    decide, determine_next_stage, get_system_prompt, has_solution_hint,
    STAGE_PROMPTS, SOLUTION_SECTIONS
)
from tests.test_logger import test_logger


def make_history(length: int):
    """Alternating user/assistant turns."""
    return [
        Turn(role="user" if i % 2 == 0 else "assistant", content=f"turn {i}", timestamp=1000 + i)
        for i in range(length)
    ]


class TestTransitions:
    """Test the history-length transition table."""

    def setup_method(self):
        """Setup test environment."""
        test_logger.log_section("TESTING: workflow.py - transitions")

    @pytest.mark.parametrize("length", [0, 1])
    def test_initial_stays_initial_below_threshold(self, length):
        """Initial with fewer than 2 stored turns stays initial."""
        test_logger.log_test_start("workflow.py", "determine_next_stage", f"initial_len_{length}")

        try:
            assert determine_next_stage(Stage.INITIAL, "help", make_history(length)) is Stage.INITIAL
            test_logger.log_test_pass("workflow.py", "determine_next_stage", f"initial_len_{length}")
        except Exception as e:
            test_logger.log_test_fail("workflow.py", "determine_next_stage", f"initial_len_{length}", str(e))
            raise

    @pytest.mark.parametrize("length", [2, 3, 4, 10])
    def test_initial_moves_to_diagnostic(self, length):
        """Initial with 2 or more stored turns moves to diagnostic."""
        test_logger.log_test_start("workflow.py", "determine_next_stage", f"initial_to_diagnostic_{length}")

        try:
            assert determine_next_stage(Stage.INITIAL, "help", make_history(length)) is Stage.DIAGNOSTIC
            test_logger.log_test_pass("workflow.py", "determine_next_stage", f"initial_to_diagnostic_{length}")
        except Exception as e:
            test_logger.log_test_fail("workflow.py", "determine_next_stage", f"initial_to_diagnostic_{length}", str(e))
            raise

    @pytest.mark.parametrize("length,expected", [
        (0, Stage.DIAGNOSTIC),
        (3, Stage.DIAGNOSTIC),
        (4, Stage.SOLUTION),
        (12, Stage.SOLUTION),
    ])
    def test_diagnostic_threshold(self, length, expected):
        """Diagnostic moves to solution at 4 stored turns."""
        test_logger.log_test_start("workflow.py", "determine_next_stage", f"diagnostic_len_{length}")

        try:
            assert determine_next_stage(Stage.DIAGNOSTIC, "help", make_history(length)) is expected
            test_logger.log_test_pass("workflow.py", "determine_next_stage", f"diagnostic_len_{length}")
        except Exception as e:
            test_logger.log_test_fail("workflow.py", "determine_next_stage", f"diagnostic_len_{length}", str(e))
            raise

    @pytest.mark.parametrize("length", [0, 1, 5, 40])
    def test_solution_is_absorbing(self, length):
        """Solution never returns another stage."""
        test_logger.log_test_start("workflow.py", "determine_next_stage", f"solution_len_{length}")

        try:
            assert determine_next_stage(Stage.SOLUTION, "thanks", make_history(length)) is Stage.SOLUTION
            test_logger.log_test_pass("workflow.py", "determine_next_stage", f"solution_len_{length}")
        except Exception as e:
            test_logger.log_test_fail("workflow.py", "determine_next_stage", f"solution_len_{length}", str(e))
            raise

    def test_unknown_stage_treated_as_initial(self):
        """Unrecognized stage labels behave like initial."""
        test_logger.log_test_start("workflow.py", "decide", "unknown_stage")

        try:
            assert determine_next_stage("bogus", "help", make_history(0)) is Stage.INITIAL
            assert determine_next_stage("bogus", "help", make_history(2)) is Stage.DIAGNOSTIC
            assert determine_next_stage(None, "help", make_history(2)) is Stage.DIAGNOSTIC
            assert decide("bogus", "help", []).system_prompt == STAGE_PROMPTS[Stage.INITIAL]
            test_logger.log_test_pass("workflow.py", "decide", "unknown_stage")
        except Exception as e:
            test_logger.log_test_fail("workflow.py", "decide", "unknown_stage", str(e))
            raise

    def test_plain_string_stages_accepted(self):
        """Stored stage labels are plain strings."""
        assert determine_next_stage("diagnostic", "help", make_history(4)) is Stage.SOLUTION

    def test_keywords_do_not_gate_transition(self):
        """Solution keywords in the message do not change the outcome."""
        test_logger.log_test_start("workflow.py", "determine_next_stage", "keywords_ignored")

        try:
            message = "I think the root cause is the PID, should I adjust and calibrate?"
            assert has_solution_hint(message)
            assert determine_next_stage(Stage.DIAGNOSTIC, message, make_history(2)) is Stage.DIAGNOSTIC
            assert determine_next_stage(Stage.INITIAL, message, make_history(0)) is Stage.INITIAL
            test_logger.log_test_pass("workflow.py", "determine_next_stage", "keywords_ignored")
        except Exception as e:
            test_logger.log_test_fail("workflow.py", "determine_next_stage", "keywords_ignored", str(e))
            raise

    def test_stage_sequence_is_monotonic(self):
        """Driving a session turn by turn never revisits an earlier stage."""
        test_logger.log_test_start("workflow.py", "decide", "monotonic_sequence")

        try:
            order = [Stage.INITIAL, Stage.DIAGNOSTIC, Stage.SOLUTION]
            stage = Stage.INITIAL
            history = []
            visited = []
            for _ in range(8):
                stage = decide(stage, "still broken", history).next_stage
                visited.append(stage)
                history = make_history(len(history) + 2)

            indexes = [order.index(s) for s in visited]
            assert indexes == sorted(indexes)
            assert visited[0] is Stage.INITIAL
            assert visited[1] is Stage.DIAGNOSTIC
            assert visited[-1] is Stage.SOLUTION
            test_logger.log_test_pass("workflow.py", "decide", "monotonic_sequence", str([s.value for s in visited]))
        except Exception as e:
            test_logger.log_test_fail("workflow.py", "decide", "monotonic_sequence", str(e))
            raise


class TestPrompts:
    """Test stage prompt selection."""

    def setup_method(self):
        """Setup test environment."""
        test_logger.log_section("TESTING: workflow.py - prompts")

    def test_prompt_selected_by_current_stage(self):
        """Prompt follows the current stage even when the stage advances."""
        test_logger.log_test_start("workflow.py", "decide", "prompt_by_current_stage")

        try:
            decision = decide(Stage.INITIAL, "still oscillating", make_history(2))
            assert decision.next_stage is Stage.DIAGNOSTIC
            assert decision.system_prompt == STAGE_PROMPTS[Stage.INITIAL]

            decision = decide(Stage.DIAGNOSTIC, "motor is hot", make_history(4))
            assert decision.next_stage is Stage.SOLUTION
            assert decision.system_prompt == STAGE_PROMPTS[Stage.DIAGNOSTIC]
            test_logger.log_test_pass("workflow.py", "decide", "prompt_by_current_stage")
        except Exception as e:
            test_logger.log_test_fail("workflow.py", "decide", "prompt_by_current_stage", str(e))
            raise

    def test_solution_prompt_has_sections_in_order(self):
        """Solution prompt lists the four sections in fixed order and forbids questions."""
        test_logger.log_test_start("workflow.py", "get_system_prompt", "solution_sections")

        try:
            prompt = get_system_prompt(Stage.SOLUTION)
            positions = [prompt.index(label) for label in SOLUTION_SECTIONS]
            assert positions == sorted(positions)
            assert "Do not ask any further questions" in prompt
            assert "1." in prompt and "2." in prompt
            test_logger.log_test_pass("workflow.py", "get_system_prompt", "solution_sections")
        except Exception as e:
            test_logger.log_test_fail("workflow.py", "get_system_prompt", "solution_sections", str(e))
            raise

    def test_prompts_discourage_repeat_questions(self):
        """Questioning stages tell the model not to re-ask answered questions."""
        assert "already answered" in get_system_prompt(Stage.INITIAL)
        assert "already answered" in get_system_prompt(Stage.DIAGNOSTIC)

    def test_diagnostic_prompt_covers_fault_categories(self):
        """Diagnostic prompt names the four fault families and the 1-2 question cap."""
        prompt = get_system_prompt(Stage.DIAGNOSTIC)
        for category in ("Mechanical", "Electrical", "Control", "Software"):
            assert category in prompt
        assert "1-2" in prompt

    def test_decide_is_deterministic(self):
        """Same inputs give the same decision."""
        history = make_history(3)
        assert decide(Stage.INITIAL, "x", history) == decide(Stage.INITIAL, "x", history)
