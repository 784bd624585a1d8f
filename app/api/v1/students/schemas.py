from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.core.enums import Gender

from .validators import AdmissionNo, DateOfBirth, PhoneNumber, StudentName


class ParentInfo(BaseModel):
    father_name: Optional[str] = Field(None, max_length=255)
    father_phone: Optional[str] = Field(None, max_length=20)
    father_email: Optional[EmailStr] = None
    mother_name: Optional[str] = Field(None, max_length=255)
    mother_phone: Optional[str] = Field(None, max_length=20)
    mother_email: Optional[EmailStr] = None

    class Config:
        from_attributes = True


class GuardianInfo(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    relationship: Optional[str] = Field(None, max_length=50)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None


class StudentCreate(BaseModel):
    admission_no: AdmissionNo = Field(..., min_length=1, max_length=50)
    name: StudentName = Field(..., min_length=2, max_length=255)
    email: EmailStr
    phone: Optional[PhoneNumber] = Field(None, max_length=20)
    dob: Optional[DateOfBirth] = None
    gender: Optional[Gender] = None
    address: Optional[str] = Field(None, max_length=500)
    class_id: int
    section_id: int
    session_id: int
    parent: Optional[ParentInfo] = None
    guardian: Optional[GuardianInfo] = None


class StudentUpdate(BaseModel):
    """Partial update. Changing class/section mutates the current enrollment."""

    admission_no: Optional[AdmissionNo] = Field(None, min_length=1, max_length=50)
    name: Optional[StudentName] = Field(None, min_length=2, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[PhoneNumber] = Field(None, max_length=20)
    dob: Optional[DateOfBirth] = None
    gender: Optional[Gender] = None
    address: Optional[str] = Field(None, max_length=500)
    class_id: Optional[int] = None
    section_id: Optional[int] = None
    parent: Optional[ParentInfo] = None
    guardian: Optional[GuardianInfo] = None


class StudentResponse(BaseModel):
    id: int
    admission_no: str
    name: str
    email: str
    phone: Optional[str] = None
    dob: Optional[date] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    class_id: int
    class_name: Optional[str] = None
    section_id: int
    section_name: Optional[str] = None
    session_id: int
    user_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class StudentDetail(StudentResponse):
    parent: Optional[ParentInfo] = None
    guardian: Optional[GuardianInfo] = None


class StudentImportRow(BaseModel):
    """One CSV/Excel data row. Blank cells arrive as None."""

    admission_no: AdmissionNo = Field(..., min_length=1, max_length=50)
    name: StudentName = Field(..., min_length=2, max_length=255)
    email: EmailStr
    phone: Optional[PhoneNumber] = None
    dob: Optional[DateOfBirth] = None
    gender: Optional[Gender] = None
    address: Optional[str] = Field(None, max_length=500)
    class_name: str = Field(..., min_length=1)
    section_name: str = Field(..., min_length=1)

    @field_validator("gender", mode="before")
    @classmethod
    def _lower_gender(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class ImportResult(BaseModel):
    total: int
    imported: int
    failed: int
    errors: List[str] = Field(default_factory=list)
