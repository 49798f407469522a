"""
Core calculations for the Mortgage Math Walkthrough.

This module holds everything the Streamlit front end needs that is not
presentation: the wizard state (current step plus the funnel inputs
collected so far), the derived metrics, the excellent/good/poor status of
each report card metric, the diagnostic messages and a funnel breakdown
table.  Nothing here imports Streamlit, so the logic can be exercised
directly from tests.
"""

import logging
import math
import re
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

logger = logging.getLogger(__name__)


# Default values for every funnel input.  Only the average revenue per loan
# starts at a non-zero value.
DEFAULT_INPUTS: Dict[str, float] = {
    "ad_spend": 0.0,
    "leads": 0.0,
    "speed_to_lead_count": 0.0,
    "contacts": 0.0,
    "appts": 0.0,
    "apps": 0.0,
    "funded": 0.0,
    "avg_gos": 9000.0,
}

REPORT_STEP = 4


@dataclass(frozen=True)
class WizardStep:
    """Title, description and input fields of one wizard step."""

    title: str
    description: str
    fields: Tuple[str, ...]


WIZARD_STEPS: List[WizardStep] = [
    WizardStep(
        "The Investment",
        "How much are you putting into the machine?",
        ("ad_spend", "leads"),
    ),
    WizardStep(
        "The First Response",
        "Speed and initial engagement are the biggest killers of ROI.",
        ("speed_to_lead_count", "contacts"),
    ),
    WizardStep(
        "The Commitment",
        "Turning conversations into actual business opportunities.",
        ("appts", "apps"),
    ),
    WizardStep(
        "The Closing",
        "The final result and your revenue per unit.",
        ("funded", "avg_gos"),
    ),
]

FIELD_LABELS: Dict[str, str] = {
    "ad_spend": "Total Monthly Spend ($)",
    "leads": "Total Leads Generated",
    "speed_to_lead_count": "Leads Contacted in < 5 Mins",
    "contacts": "Total Conversations (Contacted)",
    "appts": "Appointments Set/Shown",
    "apps": "Full Applications (1003s)",
    "funded": "Loans Funded",
    "avg_gos": "Avg Revenue/GOS per Loan ($)",
}

# Leading numeric prefix, e.g. "12abc" -> "12".  ASCII digits only.
_NUMBER_PREFIX = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


def parse_number(raw: Any) -> float:
    """Coerce a raw widget value to a float, falling back to 0.

    Numbers pass through unchanged.  Strings contribute their leading
    decimal number only: ``"12abc"`` gives 12 and ``"1_000"`` gives 1.
    Anything without such a prefix, as well as NaN and infinite values,
    becomes 0.0.

    Args:
        raw: Value received from the presentation layer.

    Returns:
        A finite float.
    """
    if raw is None:
        return 0.0
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        match = _NUMBER_PREFIX.match(str(raw))
        value = float(match.group(0)) if match else 0.0
    if not math.isfinite(value):
        return 0.0
    return value


def _ratio(numerator: float, denominator: float, scale: float = 1.0) -> float:
    """Return ``numerator / denominator * scale`` or 0 for a non-positive denominator.

    Scaling happens before the division so whole-number percentages come out
    exact (55 of 100 is 55.0, not 55.00000000000001) and land on their
    status thresholds.
    """
    if denominator > 0:
        return numerator * scale / denominator
    return 0.0


@dataclass
class InputRecord:
    """Funnel inputs collected by the wizard."""

    ad_spend: float = DEFAULT_INPUTS["ad_spend"]
    leads: float = DEFAULT_INPUTS["leads"]
    speed_to_lead_count: float = DEFAULT_INPUTS["speed_to_lead_count"]
    contacts: float = DEFAULT_INPUTS["contacts"]
    appts: float = DEFAULT_INPUTS["appts"]
    apps: float = DEFAULT_INPUTS["apps"]
    funded: float = DEFAULT_INPUTS["funded"]
    avg_gos: float = DEFAULT_INPUTS["avg_gos"]

    def to_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class ResultsRecord:
    """Ratios and totals derived from an :class:`InputRecord`."""

    cpfl: float
    speed_rate: float
    contact_rate: float
    app_to_funded: float
    total_rev: float
    roas: float


def compute_results(inputs: InputRecord) -> ResultsRecord:
    """Derive the report metrics from the funnel inputs.

    Every ratio guards its denominator and yields 0 instead of dividing by
    zero.  The function has no side effects, so equal inputs always give
    equal results.

    Args:
        inputs: Current wizard inputs.

    Returns:
        The derived :class:`ResultsRecord`.
    """
    total_rev = inputs.funded * inputs.avg_gos
    return ResultsRecord(
        cpfl=_ratio(inputs.ad_spend, inputs.funded),
        speed_rate=_ratio(inputs.speed_to_lead_count, inputs.leads, 100.0),
        contact_rate=_ratio(inputs.contacts, inputs.leads, 100.0),
        app_to_funded=_ratio(inputs.funded, inputs.apps, 100.0),
        total_rev=total_rev,
        roas=_ratio(total_rev, inputs.ad_spend),
    )


# -----------------------------------------------------------------------------
# Status classification
#
# Each report card metric is graded excellent, good or poor against two fixed
# thresholds.  The excellent check runs first with a strict comparison, so a
# value sitting exactly on a threshold falls into the lower band.

class Status(Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    POOR = "poor"


@dataclass(frozen=True)
class Thresholds:
    excellent: float
    good: float
    higher_is_better: bool = True

    def classify(self, value: float) -> Status:
        if self.higher_is_better:
            if value > self.excellent:
                return Status.EXCELLENT
            if value > self.good:
                return Status.GOOD
        else:
            if value < self.excellent:
                return Status.EXCELLENT
            if value < self.good:
                return Status.GOOD
        return Status.POOR


METRIC_THRESHOLDS: Dict[str, Thresholds] = {
    "cpfl": Thresholds(excellent=1500, good=2500, higher_is_better=False),
    "roas": Thresholds(excellent=4, good=2.5),
    "speed_rate": Thresholds(excellent=60, good=30),
    "app_to_funded": Thresholds(excellent=70, good=55),
}


def metric_status(metric: str, results: ResultsRecord) -> Status:
    """Grade one report card metric.

    Args:
        metric: One of the keys of ``METRIC_THRESHOLDS``.
        results: Derived metrics.

    Returns:
        The :class:`Status` band the metric falls into.
    """
    return METRIC_THRESHOLDS[metric].classify(getattr(results, metric))


@dataclass(frozen=True)
class MetricCard:
    label: str
    value: str
    target: str
    status: Status


def build_report_card(results: ResultsRecord) -> List[MetricCard]:
    """Return the four report card entries in display order."""
    return [
        MetricCard(
            "Cost Per Funded Loan",
            f"${results.cpfl:,.0f}",
            "Target: <$2,500",
            metric_status("cpfl", results),
        ),
        MetricCard(
            "ROAS",
            f"{results.roas:.1f}x",
            "Target: 3.0x+",
            metric_status("roas", results),
        ),
        MetricCard(
            "Speed to Lead Rate",
            f"{results.speed_rate:.0f}%",
            "Target: 60%+",
            metric_status("speed_rate", results),
        ),
        MetricCard(
            "Pull-Through (App to Funded)",
            f"{results.app_to_funded:.0f}%",
            "Target: 70%+",
            metric_status("app_to_funded", results),
        ),
    ]


# -----------------------------------------------------------------------------
# Diagnostics

class Severity(Enum):
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


@dataclass(frozen=True)
class Diagnostic:
    key: str
    headline: str
    message: str
    severity: Severity


def diagnose(results: ResultsRecord) -> List[Diagnostic]:
    """Evaluate the strategic diagnosis for a set of results.

    Each check is independent of the others: any combination of the
    speed-to-lead, acquisition cost and profitability diagnostics may be
    returned, including none.

    Args:
        results: Derived metrics.

    Returns:
        The diagnostics that apply, in display order.
    """
    found: List[Diagnostic] = []
    if results.speed_rate < 40:
        found.append(
            Diagnostic(
                "speed_to_lead",
                "Speed to Lead",
                "Your Speed to Lead is killing your conversion. Implement an automated "
                "dialer or AI lead-sitter to contact leads within the first 60 seconds.",
                Severity.WARNING,
            )
        )
    if results.cpfl > 2500:
        found.append(
            Diagnostic(
                "acquisition_cost",
                "Cost Per Funded Loan",
                "Your Cost Per Funded Loan is too high. You are likely 'buying' volume "
                "rather than 'manufacturing' it. Focus on your contact-to-appointment "
                "conversion skills.",
                Severity.ERROR,
            )
        )
    if results.roas > 3:
        found.append(
            Diagnostic(
                "profitable",
                "Profitable",
                f"Your marketing is Profitable. For every $1 you spend, you earn "
                f"${results.roas:.1f}. You have permission to scale your current ad budget.",
                Severity.SUCCESS,
            )
        )
    return found


# Stage label, input field, field the conversion is measured against
FUNNEL_STAGES: List[Tuple[str, str, Optional[str]]] = [
    ("Leads", "leads", None),
    ("Contacted < 5 Mins", "speed_to_lead_count", "leads"),
    ("Conversations", "contacts", "leads"),
    ("Appointments", "appts", "contacts"),
    ("Applications", "apps", "appts"),
    ("Funded Loans", "funded", "apps"),
]


def compute_funnel(inputs: InputRecord) -> pd.DataFrame:
    """Build a stage-by-stage view of the lead funnel.

    Args:
        inputs: Current wizard inputs.

    Returns:
        A DataFrame with columns ``Stage``, ``Count``, ``% of Leads`` and
        ``Stage Conversion (%)``.  The leads row has a stage conversion of
        100 when there are leads and 0 otherwise.
    """
    rows = []
    for label, name, base in FUNNEL_STAGES:
        count = getattr(inputs, name)
        previous = getattr(inputs, base) if base else count
        rows.append(
            {
                "Stage": label,
                "Count": count,
                "% of Leads": _ratio(count, inputs.leads, 100.0),
                "Stage Conversion (%)": _ratio(count, previous, 100.0),
            }
        )
    return pd.DataFrame(rows)


# -----------------------------------------------------------------------------
# Wizard state

@dataclass
class WizardState:
    """Current step and inputs of one walkthrough.

    Steps 0 to 3 collect inputs and step 4 shows the report.  The state is
    cyclic: ``restart`` takes the report back to an empty first step.
    """

    step: int = 0
    inputs: InputRecord = field(default_factory=InputRecord)

    @property
    def is_report(self) -> bool:
        return self.step >= REPORT_STEP

    @property
    def results(self) -> ResultsRecord:
        return compute_results(self.inputs)

    def current_fields(self) -> Tuple[str, ...]:
        """Field names presented at the current step (none on the report)."""
        if self.is_report:
            return ()
        return WIZARD_STEPS[self.step].fields

    def next(self) -> int:
        """Advance one step, stopping at the report.  No input is validated."""
        previous = self.step
        self.step = min(self.step + 1, REPORT_STEP)
        logger.info(f"Wizard step {previous} -> {self.step}")
        return self.step

    def back(self) -> int:
        """Go back one step; a no-op on the first step."""
        previous = self.step
        self.step = max(self.step - 1, 0)
        logger.info(f"Wizard step {previous} -> {self.step}")
        return self.step

    def restart(self) -> None:
        """Return to the first step with default inputs."""
        self.step = 0
        self.inputs = InputRecord()
        logger.info("Wizard restarted")

    def set_field(self, name: str, raw_value: Any) -> float:
        """Store one input, coercing unparseable values to 0.

        Args:
            name: Input field name, e.g. ``"ad_spend"``.
            raw_value: Value from the widget or a raw string.

        Returns:
            The value actually stored.

        Raises:
            KeyError: If ``name`` is not an input field.
        """
        if name not in DEFAULT_INPUTS:
            raise KeyError(f"Unknown input field: {name}")
        value = parse_number(raw_value)
        if value == 0.0 and raw_value not in (None, "") and not _is_zero_literal(raw_value):
            logger.warning(f"Invalid numeric value for {name}: {raw_value!r}, using default 0")
        setattr(self.inputs, name, value)
        logger.debug(f"Set {name} = {value}")
        return value


def _is_zero_literal(raw: Any) -> bool:
    try:
        return float(raw) == 0.0
    except (TypeError, ValueError):
        return False
