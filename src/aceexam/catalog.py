# closed catalog of academic fields and their specializations
from typing import Dict, List

from .errors import InvalidInput
from .models import AcademicContext

ACADEMIC_STRUCTURE: Dict[str, List[str]] = {
    "Engineering": [
        "Computer Science & IT",
        "Mechanical Engineering",
        "Electrical & Electronics",
        "Civil Engineering",
        "Chemical Engineering",
        "Aerospace Engineering",
    ],
    "Commerce": [
        "Accounting & Finance",
        "Business Management",
        "Economics",
        "Marketing",
        "International Trade",
    ],
    "MBA / Management": [
        "Strategic Management",
        "Corporate Finance",
        "Operations Management",
        "Human Resources",
        "Organizational Behavior",
    ],
    "Arts & Humanities": [
        "Modern History",
        "Political Science",
        "Sociology",
        "Clinical Psychology",
        "English Literature",
    ],
    "Natural Sciences": [
        "Theoretical Physics",
        "Organic Chemistry",
        "Molecular Biology",
        "Applied Mathematics",
        "Environmental Science",
    ],
    "Legal Studies": [
        "Criminal Jurisprudence",
        "Constitutional Law",
        "Corporate Governance",
        "International Law",
    ],
}

FIELDS = list(ACADEMIC_STRUCTURE.keys())


def sub_fields_for(field: str) -> List[str]:
    """Specializations of a field; raises InvalidInput for unknown fields"""
    if field not in ACADEMIC_STRUCTURE:
        raise InvalidInput(f"Unknown academic field: {field!r}")
    return ACADEMIC_STRUCTURE[field]


def default_context() -> AcademicContext:
    """Context a new session starts with: first field, its first specialization, no subject"""
    return AcademicContext(field=FIELDS[0], sub_field=ACADEMIC_STRUCTURE[FIELDS[0]][0], subject="")


def validate_context(context: AcademicContext) -> AcademicContext:
    """Check that the sub-field belongs to the field"""
    if context.sub_field not in sub_fields_for(context.field):
        raise InvalidInput(f"{context.sub_field!r} is not a specialization of {context.field!r}")
    return context
