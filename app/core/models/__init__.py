from app.core.models.academic_session import AcademicSession
from app.core.models.class_model import SchoolClass
from app.core.models.section_model import Section
from app.core.models.student import Guardian, Student, StudentParent
from app.core.models.fee_group import FeeGroup
from app.core.models.fee_type import FeeType
from app.core.models.fee_master import FeeMaster
from app.core.models.student_fee import StudentFee
from app.core.models.fee_transaction import FeeTransaction

__all__ = [
    "AcademicSession",
    "SchoolClass",
    "Section",
    "Student",
    "StudentParent",
    "Guardian",
    "FeeGroup",
    "FeeType",
    "FeeMaster",
    "StudentFee",
    "FeeTransaction",
]
