"""Ordered header-to-field rule table

Rules are tried top to bottom and the first match wins, so a header such as
"Employee Name" is never reported as an employee id.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from core.enums import MappedField


@dataclass(frozen=True)
class FieldRule:
    field: MappedField
    description: str
    predicate: Callable[[str], bool]

    def matches(self, header: str) -> bool:
        return self.predicate(header)


def _contains_any(*needles: str) -> Callable[[str], bool]:
    return lambda header: any(n in header for n in needles)


def _equals_any(*values: str) -> Callable[[str], bool]:
    return lambda header: header in values


def _employee_id(header: str) -> bool:
    return "employee" in header and any(n in header for n in ("id", "no", "number"))


FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule(MappedField.EMPLOYEE_ID, 'contains "employee" and one of id/no/number', _employee_id),
    FieldRule(MappedField.NAME, 'is "name", "employee name" or "full name"',
              _equals_any("name", "employee name", "full name")),
    FieldRule(MappedField.EMAIL, 'contains "email" or "e-mail"', _contains_any("email", "e-mail")),
    FieldRule(MappedField.DESIGNATION, 'contains "designation", "title" or "position"',
              _contains_any("designation", "title", "position")),
    FieldRule(MappedField.DEPARTMENT, 'contains "department" or "dept"', _contains_any("department", "dept")),
    FieldRule(MappedField.DIVISION, 'contains "division"', _contains_any("division")),
    FieldRule(MappedField.GEOGRAPHY, 'contains "geography", "location" or "region"',
              _contains_any("geography", "location", "region")),
)


def normalize_header(header) -> str:
    if header is None:
        return ""
    return str(header).strip().lower()


def classify_header(header, rules: tuple[FieldRule, ...] = FIELD_RULES) -> Optional[MappedField]:
    """Field of the first matching rule, or None"""
    normalized = normalize_header(header)
    if not normalized:
        return None
    for rule in rules:
        if rule.matches(normalized):
            return rule.field
    return None


def is_employee_id_header(header) -> bool:
    return classify_header(header) == MappedField.EMPLOYEE_ID
