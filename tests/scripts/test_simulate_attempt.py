from __future__ import annotations

import argparse

import pytest

from quizportal.quizzes.rules import validate_quiz
from scripts.simulate_attempt import _demo_quiz, _run


def test_demo_quiz_is_valid() -> None:
    quiz = validate_quiz(_demo_quiz())

    assert quiz.total_points == 20


@pytest.mark.asyncio
async def test_manual_submit_walkthrough_grades_attempt(capsys) -> None:
    args = argparse.Namespace(
        auto_submit=False,
        tick_seconds=0.01,
        debounce_seconds=0.01,
        log_level="WARNING",
    )

    exit_code = await _run(args)

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "[LOADED] 4 questions, 01:00 left" in output
    assert "[SUBMITTED] status=completed score=10" in output
    assert "[GRADED] score=18/20" in output
    assert "passed=True" in output
