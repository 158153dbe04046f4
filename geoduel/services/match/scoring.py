import math

BASE_POINTS = 100
# Speed bonus decays by one point every 100ms and reaches zero at 15s
BONUS_WINDOW_MS = 15000
BONUS_STEP_MS = 100


def speed_bonus(elapsed_ms: int) -> int:
    return max(0, math.floor((BONUS_WINDOW_MS - elapsed_ms) / BONUS_STEP_MS))


def score_answer(is_correct: bool, elapsed_ms: int) -> int:
    """Points for a single answer.

    Correct answers earn the base award plus the speed bonus; incorrect
    answers earn nothing regardless of timing.
    """
    if not is_correct:
        return 0
    return BASE_POINTS + speed_bonus(elapsed_ms)


def is_correct_answer(answer, correct_answer) -> bool:
    # Exact, case-sensitive comparison
    return isinstance(answer, str) and answer == correct_answer


def decide_winner(scores):
    """Return the id with the strictly highest score, or None on a tie."""
    if not scores:
        return None
    ranked = sorted(scores.items(), key=lambda kv: kv[1], reverse=True)
    if len(ranked) > 1 and ranked[0][1] == ranked[1][1]:
        return None
    return ranked[0][0]
