"""CVSS vector decoding into a base score and qualitative severity."""

import logging
from dataclasses import dataclass
from typing import Optional

from cvss import CVSS2, CVSS3, CVSS4
from cvss.exceptions import CVSSError

from .models import Advisory, AffectedEntry, Severity, SeverityEntry

logger = logging.getLogger(__name__)

# Severity entry type -> CVSS major version we can score
SCORABLE_TYPES: dict[str, int] = {
    "CVSS_V4": 4,
    "CVSS_V3": 3,
    "CVSS_V2": 2,
}


@dataclass(frozen=True)
class SeverityResult:
    """A decoded severity vector. ``score`` is None when it could not be computed."""

    score: Optional[float]
    label: Severity
    vector: str

    @property
    def known(self) -> bool:
        return self.score is not None and self.label != Severity.UNKNOWN


def _label_v3(score: float) -> Severity:
    if score == 0:
        return Severity.NONE
    if score < 4.0:
        return Severity.LOW
    if score < 7.0:
        return Severity.MEDIUM
    if score < 9.0:
        return Severity.HIGH
    return Severity.CRITICAL


def _label_v2(score: float) -> Severity:
    if score < 4.0:
        return Severity.LOW
    if score < 7.0:
        return Severity.MEDIUM
    return Severity.HIGH


def parse_vector(vector: str, cvss_version: int) -> SeverityResult:
    """Compute the base score and label for a CVSS vector.

    Never raises: a malformed vector or unsupported version yields an
    UNKNOWN result that still carries the raw vector text.
    """
    try:
        if cvss_version == 4:
            score = float(CVSS4(vector).base_score)
            # v4.0 keeps the v3 qualitative bands
            label = _label_v3(score)
        elif cvss_version == 3:
            score = float(CVSS3(vector).base_score)
            label = _label_v3(score)
        elif cvss_version == 2:
            score = float(CVSS2(vector).base_score)
            label = _label_v2(score)
        else:
            raise ValueError(f"unsupported CVSS version {cvss_version}")
    except (CVSSError, ValueError, TypeError, AttributeError, LookupError):
        logger.debug(f"Error processing CVSS vector {vector}")
        return SeverityResult(score=None, label=Severity.UNKNOWN, vector=str(vector))
    return SeverityResult(score=score, label=label, vector=vector)


def select_severity(entries: list[SeverityEntry]) -> Optional[SeverityEntry]:
    """Pick the preferred severity entry: the highest scorable CVSS version wins.

    Entries of other types are only used when no scorable entry exists.
    """
    if not entries:
        return None
    scorable = [e for e in entries if e.type.upper() in SCORABLE_TYPES]
    if scorable:
        return max(scorable, key=lambda e: SCORABLE_TYPES[e.type.upper()])
    return entries[0]


def resolve_severity(advisory: Advisory, entry: Optional[AffectedEntry] = None) -> Optional[SeverityResult]:
    """Decode the preferred severity of an advisory, falling back to the affected entry's."""
    chosen = select_severity(advisory.severity)
    if chosen is None and entry is not None:
        chosen = select_severity(entry.severity)
    if chosen is None:
        return None
    return parse_vector(chosen.vector_string, SCORABLE_TYPES.get(chosen.type.upper(), 0))
