import pytest

from core.enums import MappedField
from utils.field_rules import FIELD_RULES, classify_header, is_employee_id_header


@pytest.mark.parametrize("header,field", [
    ("Employee ID", MappedField.EMPLOYEE_ID),
    ("  EMPLOYEE NO ", MappedField.EMPLOYEE_ID),
    ("Employee Number", MappedField.EMPLOYEE_ID),
    ("Name", MappedField.NAME),
    ("Full Name", MappedField.NAME),
    ("Work E-mail", MappedField.EMAIL),
    ("Job Title", MappedField.DESIGNATION),
    ("Dept", MappedField.DEPARTMENT),
    ("Division", MappedField.DIVISION),
    ("Region", MappedField.GEOGRAPHY),
])
def test_classify_header(header, field):
    assert classify_header(header) == field


@pytest.mark.parametrize("header", ["Bonus %", "Base Salary", "", None, "Manager Name"])
def test_unmapped_headers(header):
    assert classify_header(header) is None


def test_first_rule_wins():
    assert classify_header("Employee Name") == MappedField.NAME
    # matches both the id and the email rule
    assert classify_header("Employee Email ID") == MappedField.EMPLOYEE_ID


def test_rule_table_order():
    assert FIELD_RULES[0].field == MappedField.EMPLOYEE_ID
    assert [rule.field for rule in FIELD_RULES].count(MappedField.NAME) == 1


def test_is_employee_id_header():
    assert is_employee_id_header("employee id")
    assert not is_employee_id_header("Email")
