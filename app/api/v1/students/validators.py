"""Field rules shared by the student create/update payloads and the bulk importer."""

import re
from datetime import date
from typing import Annotated, Optional

from pydantic import AfterValidator

ADMISSION_NO_RE = re.compile(r"^[A-Z0-9\-]+$")
NAME_RE = re.compile(r"^[a-zA-Z\s\.\-']+$")
PHONE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")

MIN_AGE = 3
MAX_AGE = 25


def validate_admission_no(value: str) -> str:
    value = value.strip()
    if not ADMISSION_NO_RE.match(value):
        raise ValueError("admission_no may only contain uppercase letters, digits and hyphens")
    return value


def validate_name(value: str) -> str:
    value = value.strip()
    if len(value) < 2:
        raise ValueError("name must be at least 2 characters")
    if not NAME_RE.match(value):
        raise ValueError("name may only contain letters, spaces, dots, hyphens and apostrophes")
    return value


def validate_phone(value: Optional[str]) -> Optional[str]:
    if value is None or not str(value).strip():
        return None
    value = str(value).strip()
    if not PHONE_RE.match(value):
        raise ValueError("phone must be a valid phone number")
    return value


def age_on(dob: date, today: date) -> int:
    return today.year - dob.year - ((today.month, today.day) < (dob.month, dob.day))


def check_dob(value: Optional[date], today: date) -> Optional[date]:
    if value is None:
        return None
    if value >= today:
        raise ValueError("dob must be a date in the past")
    if value <= date(1900, 1, 1):
        raise ValueError("dob must be after 1900-01-01")
    age = age_on(value, today)
    if age < MIN_AGE or age > MAX_AGE:
        raise ValueError(f"student age must be between {MIN_AGE} and {MAX_AGE} years")
    return value


def validate_dob(value: Optional[date]) -> Optional[date]:
    return check_dob(value, date.today())


AdmissionNo = Annotated[str, AfterValidator(validate_admission_no)]
StudentName = Annotated[str, AfterValidator(validate_name)]
PhoneNumber = Annotated[str, AfterValidator(validate_phone)]
DateOfBirth = Annotated[date, AfterValidator(validate_dob)]
