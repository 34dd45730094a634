"""
CTC / salary breakdown engine.

Two directions over the same compensation rule:

* ``breakdown_from_ctc``: annual cost-to-company -> itemized breakdown.
  Gross is found by fixed-point iteration because the employer ESI share
  only exists while monthly gross is at or under the ESI threshold.
* ``breakdown_from_net_salary``: desired monthly take-home -> breakdown,
  found by damped iteration on monthly gross.

Nothing here raises on bad input. Non-positive or unparseable amounts give
``ZERO_BREAKDOWN``, as does a rule whose basic share leaves no positive
gross for the CTC. Figures are returned unrounded.
"""
import logging
import math
from typing import Any, Optional

from schemas import (
    BasicAllocation,
    CompensationRule,
    CTCBreakdown,
    HraAllocation,
    PeriodBreakdown,
    QuickMode,
    parse_rule,
)

log = logging.getLogger(__name__)

# Statutory rates
ESI_MONTHLY_THRESHOLD = 21000.0
ESI_ANNUAL_THRESHOLD = ESI_MONTHLY_THRESHOLD * 12
PF_RATE = 0.12  # employee and employer, on basic
ESI_EMPLOYEE_RATE = 0.0075
ESI_EMPLOYER_RATE = 0.0325

# Solver settings
MAX_ITERATIONS = 100
CTC_SEED_FACTOR = 0.9
CTC_TOLERANCE = 0.5
NET_SEED_FACTOR = 1.25
NET_TOLERANCE = 0.01
NET_DAMPING = 0.8

DEFAULT_RULE = CompensationRule(
    designation="Default",
    basic=BasicAllocation(percentage_of_gross=40),
    hra=HraAllocation(percentage_of_basic=50),
    conveyance=0,
    medical=0,
    statutory_bonus=0,
)

ZERO_BREAKDOWN = CTCBreakdown()


def _positive_amount(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(amount) or amount <= 0:
        return None
    return amount


def esi_applies(monthly_gross: float) -> bool:
    # Inclusive: exactly 21,000 a month still pays ESI
    return monthly_gross <= ESI_MONTHLY_THRESHOLD


def period_from_gross(gross: float, rule: CompensationRule, months: int = 1) -> PeriodBreakdown:
    """
    Itemize one period given its gross.

    ``months`` is the length of the period: 12 when ``gross`` is annual, 1
    when monthly. Fixed allowances in the rule are monthly and get scaled by it,
    and ESI is tested on the per-month gross.
    """
    basic_pct = rule.basic.percentage_of_gross / 100
    hra_pct = rule.hra.percentage_of_basic / 100

    # Earnings
    basic = gross * basic_pct
    hra = basic * hra_pct
    conveyance = rule.conveyance * months
    medical = rule.medical * months
    statutory_bonus = rule.statutory_bonus * months
    special_allowance = max(0.0, gross - basic - hra - conveyance - medical - statutory_bonus)

    esi = esi_applies(gross / months)

    # Employee deductions
    employee_pf = basic * PF_RATE
    employee_esi = gross * ESI_EMPLOYEE_RATE if esi else 0.0
    total_deductions = employee_pf + employee_esi

    # Employer contributions
    employer_pf = basic * PF_RATE
    employer_esi = gross * ESI_EMPLOYER_RATE if esi else 0.0

    return PeriodBreakdown(
        basic=basic,
        hra=hra,
        conveyance=conveyance,
        medical=medical,
        statutory_bonus=statutory_bonus,
        special_allowance=special_allowance,
        gross=gross,
        employee_pf=employee_pf,
        employee_esi=employee_esi,
        total_deductions=total_deductions,
        net_salary=gross - total_deductions,
        employer_pf=employer_pf,
        employer_esi=employer_esi,
        ctc=gross + employer_pf + employer_esi,
    )


def _gross_from_ctc(annual_ctc: float, basic_pct: float) -> Optional[float]:
    # CTC = gross * (1 + 12% of basic share + 3.25% while under the ESI ceiling)
    estimate = annual_ctc * CTC_SEED_FACTOR
    gross = estimate
    for _ in range(MAX_ITERATIONS):
        employer_burden = PF_RATE * basic_pct
        if estimate <= ESI_ANNUAL_THRESHOLD:
            employer_burden += ESI_EMPLOYER_RATE
        divisor = 1 + employer_burden
        if divisor <= 0:
            log.warning("Basic share %.4f gives no usable gross for CTC %.2f", basic_pct, annual_ctc)
            return None
        gross = annual_ctc / divisor
        if not math.isfinite(gross):
            log.warning("Gross from CTC %.2f is not finite", annual_ctc)
            return None
        if abs(gross - estimate) < CTC_TOLERANCE:
            return gross
        estimate = gross
    log.warning("Gross from CTC %.2f did not converge in %d iterations, using %.2f",
                annual_ctc, MAX_ITERATIONS, gross)
    return gross


def _gross_from_net(monthly_net: float, rule: CompensationRule) -> float:
    gross = monthly_net * NET_SEED_FACTOR
    for _ in range(MAX_ITERATIONS):
        calculated_net = period_from_gross(gross, rule, months=1).net_salary
        if abs(calculated_net - monthly_net) < NET_TOLERANCE:
            return gross
        # Damped step
        gross = max(0.0, gross + (monthly_net - calculated_net) * NET_DAMPING)
    log.warning("Gross from net %.2f did not converge in %d iterations, using %.2f",
                monthly_net, MAX_ITERATIONS, gross)
    return gross


def breakdown_from_ctc(
    annual_ctc: Any,
    rule: Any = None,
    default_rule: CompensationRule = DEFAULT_RULE,
) -> CTCBreakdown:
    """Annual CTC -> breakdown. Annual figures first, monthly is annual / 12."""
    amount = _positive_amount(annual_ctc)
    if amount is None:
        return ZERO_BREAKDOWN

    effective = parse_rule(rule, default_rule)
    gross = _gross_from_ctc(amount, effective.basic.percentage_of_gross / 100)
    if gross is None:
        return ZERO_BREAKDOWN

    annual = period_from_gross(gross, effective, months=12)
    return CTCBreakdown(monthly=annual.divided_by(12), annual=annual)


def breakdown_from_net_salary(
    monthly_net: Any,
    rule: Any = None,
    default_rule: CompensationRule = DEFAULT_RULE,
) -> CTCBreakdown:
    """Monthly take-home -> breakdown. Monthly figures first, annual is monthly * 12."""
    amount = _positive_amount(monthly_net)
    if amount is None:
        return ZERO_BREAKDOWN

    effective = parse_rule(rule, default_rule)
    gross = _gross_from_net(amount, effective)

    monthly = period_from_gross(gross, effective, months=1)
    return CTCBreakdown(monthly=monthly, annual=monthly.times(12))


def quick_breakdown(
    amount: Any,
    mode: QuickMode = "annual",
    rule: Any = None,
    default_rule: CompensationRule = DEFAULT_RULE,
) -> CTCBreakdown:
    if mode == "in-hand":
        return breakdown_from_net_salary(amount, rule, default_rule)
    if mode == "monthly":
        monthly_ctc = _positive_amount(amount)
        if monthly_ctc is None:
            return ZERO_BREAKDOWN
        return breakdown_from_ctc(monthly_ctc * 12, rule, default_rule)
    if mode == "annual":
        return breakdown_from_ctc(amount, rule, default_rule)
    raise ValueError(f"Unknown calculation mode: {mode!r}")
