"""Bulk student import from CSV (or .xlsx with the same header row).

Rows are validated one by one; a bad row is reported as "Row N: reason" and
skipped. Accepted rows are committed together at the end. Any unexpected
error rolls back the whole file.
"""

import csv
import io
import logging
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from openpyxl import load_workbook
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.classes import service as class_service
from app.api.v1.sections import service as section_service
from app.core.exceptions import BusinessRuleError, NotFoundError
from app.core.models import AcademicSession

from . import service
from .schemas import ImportResult, StudentImportRow

logger = logging.getLogger(__name__)

REQUIRED_HEADERS = (
    "admission_no",
    "name",
    "email",
    "phone",
    "dob",
    "gender",
    "address",
    "class_name",
    "section_name",
)
MAX_ROWS = 5000


def template_csv() -> str:
    return ",".join(REQUIRED_HEADERS) + "\n"


def _norm(s) -> str:
    return (str(s).strip().lower() if s is not None else "").replace(" ", "_")


def _cell(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def _read_csv(content: bytes) -> Tuple[List[str], List[Dict[str, Optional[str]]]]:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise BusinessRuleError("Invalid CSV format. File must be UTF-8 encoded")
    reader = csv.DictReader(io.StringIO(text))
    headers = [_norm(h) for h in (reader.fieldnames or [])]
    rows = []
    for raw in reader:
        rows.append({_norm(k): _cell(v) for k, v in raw.items() if k is not None})
    return headers, rows


def _read_xlsx(content: bytes) -> Tuple[List[str], List[Dict[str, Optional[str]]]]:
    try:
        wb = load_workbook(filename=io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise BusinessRuleError(f"Invalid Excel file: {e}") from e
    try:
        ws = wb.active
        rows_iter = ws.iter_rows(values_only=True)
        header_row = next(rows_iter, None) or ()
        headers = [_norm(c) for c in header_row]
        rows = []
        for row in rows_iter:
            if not row or all(_cell(c) is None for c in row):
                continue
            rows.append({h: _cell(row[i]) if i < len(row) else None for i, h in enumerate(headers) if h})
    finally:
        wb.close()
    return headers, rows


def parse_upload(filename: str, content: bytes) -> List[Dict[str, Optional[str]]]:
    """Return data rows keyed by normalized header. Missing required headers is a 422."""
    if not content:
        raise BusinessRuleError("File is empty")
    if (filename or "").lower().endswith(".xlsx"):
        headers, rows = _read_xlsx(content)
    else:
        headers, rows = _read_csv(content)
    missing = [h for h in REQUIRED_HEADERS if h not in headers]
    if missing:
        raise BusinessRuleError(f"Invalid CSV format. Missing headers: {', '.join(missing)}")
    if len(rows) > MAX_ROWS:
        raise BusinessRuleError(f"Too many rows: at most {MAX_ROWS} students per file")
    return rows


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    return "; ".join(parts)


async def import_students(
    db: AsyncSession,
    session_id: int,
    filename: str,
    content: bytes,
) -> ImportResult:
    if not await db.get(AcademicSession, session_id):
        raise NotFoundError("Session not found")
    rows = parse_upload(filename, content)

    errors: List[str] = []
    imported = 0
    seen_admission: set = set()
    seen_email: set = set()
    try:
        # Header is spreadsheet row 1, so data starts at row 2
        for row_num, raw in enumerate(rows, start=2):
            try:
                row = StudentImportRow.model_validate(
                    {h: raw.get(h) for h in REQUIRED_HEADERS}
                )
            except ValidationError as exc:
                errors.append(f"Row {row_num}: {_validation_message(exc)}")
                continue

            school_class = await class_service.find_class_by_name(db, session_id, row.class_name)
            section = (
                await section_service.find_section_by_name(db, school_class.id, row.section_name)
                if school_class
                else None
            )
            if not school_class or not section:
                errors.append(f"Row {row_num}: Class or section not found")
                continue

            email = row.email.lower()
            if row.admission_no in seen_admission or await service.admission_no_taken(db, row.admission_no):
                errors.append(f"Row {row_num}: Student already exists")
                continue
            if email in seen_email or await service.email_taken(db, email):
                errors.append(f"Row {row_num}: Email already in use")
                continue

            user, student = service.build_student(
                admission_no=row.admission_no,
                name=row.name,
                email=email,
                phone=row.phone,
                dob=row.dob,
                gender=row.gender.value if row.gender else None,
                address=row.address,
                class_id=school_class.id,
                section_id=section.id,
                session_id=session_id,
            )
            db.add(user)
            await db.flush()
            student.user_id = user.id
            db.add(student)
            await db.flush()
            seen_admission.add(row.admission_no)
            seen_email.add(email)
            imported += 1
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Student import into session %s aborted", session_id)
        raise

    logger.info(
        "Student import into session %s: %s rows, %s imported, %s failed",
        session_id, len(rows), imported, len(errors),
    )
    return ImportResult(total=len(rows), imported=imported, failed=len(errors), errors=errors)
