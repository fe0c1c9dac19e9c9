from core.models import Grade

DANGER_THRESHOLD = 50
CAUTION_THRESHOLD = 20


def grade_from_score(score: float) -> Grade:
    """
    Maps a numeric risk score to a grade.

    Args:
        score (float): A non-negative risk score (higher is riskier).

    Returns:
        Grade: DANGER for score >= 50, CAUTION for 20 <= score < 50, SAFE otherwise.
    """
    if score >= DANGER_THRESHOLD:
        return Grade.DANGER
    if score >= CAUTION_THRESHOLD:
        return Grade.CAUTION
    return Grade.SAFE
