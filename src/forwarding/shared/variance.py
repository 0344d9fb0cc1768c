"""Variance arithmetic shared by items and revisions."""


def percentage_change(baseline: float | None, new_value: float | None) -> float:
    """Signed change from ``baseline`` to ``new_value`` as a percentage.

    A zero baseline has no meaningful percentage; any change from it is
    reported as 100%.
    """
    baseline = baseline or 0.0
    new_value = new_value or 0.0
    if baseline == 0:
        return 0.0 if new_value == 0 else 100.0
    return round((new_value - baseline) / baseline * 100, 2)


def within_auto_approval(
    cost_impact: float,
    percentage: float,
    threshold_amount: float,
    threshold_percentage: float,
) -> bool:
    """A change is auto-approvable when either its absolute cost impact or its
    absolute percentage falls within the corresponding threshold."""
    return abs(cost_impact) <= threshold_amount or abs(percentage) <= threshold_percentage
