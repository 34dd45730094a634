"""
Schemas for the CTC calculator

Compensation rules arrive from a settings store or straight from a request
body, so every numeric rule field is coerced here: anything unparseable
becomes 0. Breakdown models are plain frozen records, camelCase on the wire.
"""
import logging
import math
from typing import Any, Literal, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

log = logging.getLogger(__name__)


def to_number(value: Any, field: str = "value") -> float:
    """Parse a rule figure the lenient way: bad input reads as 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        log.warning("Unparseable %s %r treated as 0", field, value)
        return 0.0
    if not math.isfinite(number):
        log.warning("Non-finite %s %r treated as 0", field, value)
        return 0.0
    return number


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class BasicAllocation(CamelModel):
    percentage_of_gross: float = Field(
        0.0,
        validation_alias=AliasChoices("percentageOfGross", "percentage_of_gross", "percentage"),
        description="Basic pay as % of gross",
    )

    @field_validator("percentage_of_gross", mode="before")
    @classmethod
    def coerce_percentage(cls, v):
        return to_number(v, "basic percentage")


class HraAllocation(CamelModel):
    percentage_of_basic: float = Field(
        0.0,
        validation_alias=AliasChoices("percentageOfBasic", "percentage_of_basic", "percentage"),
        description="HRA as % of basic",
    )

    @field_validator("percentage_of_basic", mode="before")
    @classmethod
    def coerce_percentage(cls, v):
        return to_number(v, "hra percentage")


class CompensationRule(CamelModel):
    designation: str = Field("", description="Lookup label, not used in the math")
    basic: BasicAllocation = BasicAllocation()
    hra: HraAllocation = HraAllocation()
    # Fixed monthly allowances
    conveyance: float = 0.0
    medical: float = 0.0
    statutory_bonus: float = 0.0

    @field_validator("designation", mode="before")
    @classmethod
    def strip_designation(cls, v):
        return "" if v is None else str(v).strip()

    @field_validator("basic", "hra", mode="before")
    @classmethod
    def lenient_allocation(cls, v, info):
        if isinstance(v, (BaseModel, Mapping)):
            return v
        if v is not None:
            log.warning("Malformed %s allocation %r treated as 0%%", info.field_name, v)
        return {}

    @field_validator("conveyance", "medical", "statutory_bonus", mode="before")
    @classmethod
    def coerce_fixed(cls, v, info):
        return to_number(v, info.field_name)


def parse_rule(raw: Any, default: CompensationRule) -> CompensationRule:
    """
    Turn whatever the rule provider handed over into a CompensationRule.

    None falls back to ``default``. Mappings are validated leniently (see the
    field validators above). Anything else is logged and replaced by the default.
    """
    if raw is None:
        return default
    if isinstance(raw, CompensationRule):
        return raw
    if isinstance(raw, Mapping):
        return CompensationRule.model_validate(raw)
    log.warning("Unusable compensation rule %r, using default", raw)
    return default


class PeriodBreakdown(CamelModel):
    # Earnings
    basic: float = 0.0
    hra: float = 0.0
    conveyance: float = 0.0
    medical: float = 0.0
    statutory_bonus: float = 0.0
    special_allowance: float = 0.0
    gross: float = 0.0
    # Deductions
    employee_pf: float = Field(0.0, alias="employeePF")
    employee_esi: float = Field(0.0, alias="employeeESI")
    total_deductions: float = 0.0
    net_salary: float = 0.0
    # Employer side
    employer_pf: float = Field(0.0, alias="employerPF")
    employer_esi: float = Field(0.0, alias="employerESI")
    ctc: float = 0.0

    def _map(self, fn) -> "PeriodBreakdown":
        return PeriodBreakdown(**{name: fn(value) for name, value in self.model_dump().items()})

    def times(self, factor: float) -> "PeriodBreakdown":
        return self._map(lambda x: x * factor)

    def divided_by(self, divisor: float) -> "PeriodBreakdown":
        return self._map(lambda x: x / divisor)

    def rounded(self, ndigits: int = 2) -> "PeriodBreakdown":
        return self._map(lambda x: round(x, ndigits))


class CTCBreakdown(CamelModel):
    monthly: PeriodBreakdown = PeriodBreakdown()
    annual: PeriodBreakdown = PeriodBreakdown()

    @property
    def is_zero(self) -> bool:
        return self.monthly.gross == 0 and self.annual.gross == 0

    def rounded(self, ndigits: int = 2) -> "CTCBreakdown":
        return CTCBreakdown(monthly=self.monthly.rounded(ndigits), annual=self.annual.rounded(ndigits))


QuickMode = Literal["annual", "monthly", "in-hand"]


class CalculationRequest(CamelModel):
    # Bad amounts give the zero breakdown, not a 422
    amount: Any = Field(None, description="Annual CTC or monthly net, depending on endpoint")
    rule: Optional[CompensationRule] = Field(None, description="Inline rule, wins over designation")
    designation: Optional[str] = Field(None, description="Look the rule up in the rule book")
    round_to: Optional[int] = Field(None, ge=0, le=6, description="Round returned figures")


class QuickCalculationRequest(CalculationRequest):
    mode: QuickMode = Field("annual", description="annual / monthly CTC, or in-hand net")
