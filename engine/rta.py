"""Ready to Assign.

    RTA(M) = income through M - assigned through M - cash overspending before M

Income is inflow (net of outflow) categorised to the income group on budget
accounts; assigned covers every non-income category. Cash overspending of a
month is only charged from the following month on, because until then it can
still be covered by moving money.
"""
from engine import milliunits as mu
from models.budget import RTABreakdown


def compute_rta(total_income: int, total_assigned: int, prior_cash_overspending: int) -> int:
    return mu.sub(mu.sub(total_income, total_assigned), prior_cash_overspending)


def compute_breakdown(income_before: int, inflow_this_month: int,
                      assigned_before: int, assigned_this_month: int,
                      overspending_before_previous: int,
                      overspending_previous_month: int,
                      assigned_in_future: int = 0) -> RTABreakdown:
    """Split RTA for display.

    ``overspending_before_previous`` covers months before M-1 and
    ``overspending_previous_month`` covers M-1 alone.
    """
    left_over = compute_rta(income_before, assigned_before, overspending_before_previous)
    total = mu.sum_((left_over, inflow_this_month,
                     mu.neg(assigned_this_month), mu.neg(overspending_previous_month)))
    return RTABreakdown(
        ready_to_assign=total,
        left_over_from_previous_month=left_over,
        inflow_this_month=mu.milliunit(inflow_this_month),
        assigned_this_month=mu.milliunit(assigned_this_month),
        cash_overspending_previous_month=mu.milliunit(overspending_previous_month),
        assigned_in_future=mu.milliunit(assigned_in_future),
    )
