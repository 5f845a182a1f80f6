from __future__ import annotations

import math
from collections.abc import Iterable

from quizportal.attempts.types import Answer


def clamp_points(points: float, *, max_points: int) -> float:
    if math.isnan(points):
        return 0
    return min(max(points, 0), max_points)


def aggregate_score(answers: Iterable[Answer]) -> float:
    return sum(answer.points_earned for answer in answers)


def compute_percentage(score: float, *, total_points: int) -> float:
    if total_points <= 0:
        return 0.0
    return score / total_points * 100


def is_passing(percentage: float, *, passing_score: float) -> bool:
    return percentage >= passing_score
