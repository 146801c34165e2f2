# =============================================================================
# Specialist Query Types — Compliance Checks & Loan Calculations
# =============================================================================
#
# Both specialists reuse the general RAG answer and post-process it:
#
#   compliance        question phrased as a compliance analysis, answer
#                     scanned for a verdict, issues and recommendations
#   loan_calculation  question phrased as a loan calculation, the quoted
#                     annual rate is read from the answer and the payment
#                     computed locally
#
# DESIGN DECISION: Payment arithmetic happens here, not in the LLM.
# The model only has to find the rate in the retrieved rate sheet; the
# amortisation formula is deterministic and testable.
#
# DESIGN DECISION: Text heuristics over structured LLM output.
# Groq/Llama answers are free text; the patterns below match the way
# those answers label findings ("Issues: ...", "Recommendation: ...").
# =============================================================================

from __future__ import annotations

import re
from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Compliance
# ---------------------------------------------------------------------------

_ISSUE_PATTERNS = (
    re.compile(r"\bissues?:\s*([^.]+)", re.IGNORECASE),
    re.compile(r"\bviolations?:\s*([^.]+)", re.IGNORECASE),
    re.compile(r"\bconcerns?:\s*([^.]+)", re.IGNORECASE),
)

_RECOMMENDATION_PATTERNS = (
    re.compile(r"\brecommend(?:ations?|s)?:\s*([^.]+)", re.IGNORECASE),
    re.compile(r"\bsuggest(?:ions?|s)?:\s*([^.]+)", re.IGNORECASE),
    re.compile(r"\bshould:\s*([^.]+)", re.IGNORECASE),
)

# "compliant" optionally preceded by a negation ("non-compliant", "not compliant")
_COMPLIANT_RE = re.compile(r"\b(non-?|not\s+)?compliant\b", re.IGNORECASE)


@dataclass
class ComplianceAssessment:
    compliant: bool
    issues: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


def build_compliance_question(scenario: str, regulations: list[str]) -> str:
    return (
        f"Compliance analysis: {scenario}. "
        f"Check against regulations: {', '.join(regulations)}"
    )


def compliance_context(regulations: list[str]) -> dict:
    return {"regulatory_context": list(regulations), "user_role": "compliance_analyst"}


def is_compliant(answer: str) -> bool:
    """
    True when the answer calls the scenario compliant.

    Any negated mention ("non-compliant", "not compliant") wins over a
    plain one.
    """
    matches = list(_COMPLIANT_RE.finditer(answer))
    if any(m.group(1) for m in matches):
        return False
    return bool(matches)


def extract_issues(answer: str) -> list[str]:
    return _extract_labelled(answer, _ISSUE_PATTERNS)


def extract_recommendations(answer: str) -> list[str]:
    return _extract_labelled(answer, _RECOMMENDATION_PATTERNS)


def assess_compliance(answer: str) -> ComplianceAssessment:
    return ComplianceAssessment(
        compliant=is_compliant(answer),
        issues=extract_issues(answer),
        recommendations=extract_recommendations(answer),
    )


# ---------------------------------------------------------------------------
# Loan calculation
# ---------------------------------------------------------------------------

_RATE_RE = re.compile(r"(\d+(?:\.\d*)?)%")


@dataclass
class LoanEstimate:
    rate: float             # annual percentage rate read from the answer
    monthly_payment: float
    total_interest: float
    calculations: str       # the model's full answer, for display


def build_loan_question(loan_type: str, amount: float, term: int) -> str:
    return (
        f"Calculate {loan_type} loan for ${_format_amount(amount)} over {term} months. "
        "Include current rates, payment calculation, and total interest."
    )


def loan_context(loan_type: str) -> dict:
    return {"loan_products": [loan_type], "user_role": "loan_officer"}


def extract_rate(answer: str) -> float:
    """First percentage in the answer, or 0.0 when none is quoted."""
    match = _RATE_RE.search(answer)
    return float(match.group(1)) if match else 0.0


def monthly_payment(principal: float, annual_rate: float, months: int) -> float:
    """
    Fixed monthly payment of a fully amortising loan.

    P * r(1+r)^n / ((1+r)^n - 1) with r the monthly rate; a zero rate
    repays the principal in equal instalments.
    """
    if months <= 0:
        raise ValueError(f"Loan term must be positive, got {months} months")

    monthly_rate = annual_rate / 100 / 12
    if monthly_rate == 0:
        return principal / months

    growth = (1 + monthly_rate) ** months
    return principal * monthly_rate * growth / (growth - 1)


def estimate_loan(answer: str, amount: float, term: int) -> LoanEstimate:
    rate = extract_rate(answer)
    payment = monthly_payment(amount, rate, term)
    return LoanEstimate(
        rate=rate,
        monthly_payment=round(payment, 2),
        total_interest=round(payment * term - amount, 2),
        calculations=answer,
    )


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _format_amount(amount: float) -> str:
    return str(int(amount)) if float(amount).is_integer() else str(amount)


def _extract_labelled(answer: str, patterns: tuple[re.Pattern, ...]) -> list[str]:
    found: list[str] = []
    for pattern in patterns:
        found.extend(m.group(1).strip() for m in pattern.finditer(answer))
    return found
