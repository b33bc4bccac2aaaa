from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

# Record attribute -> Fillout question name.
# "address" is a structured answer ({address, city, state, zipCode}) that
# feeds the four location attributes.
QUESTION_NAMES: Dict[str, str] = {
    "first_name": "First Name",
    "last_name": "Last Name",
    "date_of_birth": "Date of Birth",
    "ssn": "Last 4 Digits of Social Security Number",
    "address": "Address",
    "phone_number": "Phone Number",
    "phone_type": "Phone Type",
    "best_time_to_contact": "Best Time to Contact",
    "email": "Email Address",
    "preferred_contact_method": "Preferred Contact Method",
    "visit_purpose": "Visit Purpose",
    "referral_source": "How did you hear about us?",
    "ethnicity": "Ethnicity",
    "highest_education": "Highest Education",
    "household_type": "Household Type",
    "military_status": "Military Status",
    "gender": "Gender",
    "race": "Race",
    "english_proficiency": "Are you proficient in English?",
    "marital_status": "Marital Status",
    "preferred_language": "Preferred Language",
    "current_living_status": "Current Living Status",
    "num_cars": "Number of Cars",
    "is_disabled": "Disabled?",
    "num_dependents": "Number of Children Under 18",
    "household_size": "Number of People in Household",
}

# Record attribute -> datastore column, in column order.
STORAGE_COLUMNS: Dict[str, str] = {
    "fillout_id": "Fillout Id",
    "rural_area_status": "Rural Area Status",
    "first_name": "First Name",
    "last_name": "Last Name",
    "date_of_birth": "Birth Date",
    "ssn": "SSN",
    "street_address": "Address",
    "city": "City",
    "state": "State",
    "zipcode": "Zip",
    "county": "County",
    "phone_number": "Primary Phone Number",
    "phone_type": "Primary Phone Type",
    "best_time_to_contact": "Best Time To Contact",
    "email": "Email",
    "preferred_contact_method": "Preferred Contact Type",
    "visit_purpose": "Purpose",
    "referral_source": "How did you hear about us?",
    "ethnicity": "Ethnicity",
    "highest_education": "Highest Education",
    "household_type": "Household Type",
    "military_status": "Military Status",
    "gender": "Gender",
    "race": "Race",
    "is_disabled": "Disabled",
    "english_proficiency": "English Proficient",
    "marital_status": "Marital Status",
    "preferred_language": "Preferred Language",
    "current_living_status": "Living Status",
    "num_cars": "Cars",
    "num_dependents": "Dependents",
    "household_size": "Number of Family members in the house",
    "relationship": "Relationship",
    "colonias_resident": "Colonias Resident",
}

# Keys of the structured address answer.
ADDRESS_PARTS: Dict[str, str] = {
    "street_address": "address",
    "city": "city",
    "state": "state",
    "zipcode": "zipCode",
}

GENDER_CODES: Dict[str, str] = {"M": "Male", "F": "Female", "O": "Other"}

RURAL_AREA_STATUS = "Household does not live in a rural area"
COLONIAS_RESIDENT = "No"
RELATIONSHIP = "Self"

SSN_LENGTH = 9


@dataclass(frozen=True)
class FieldMap:
    """Question names and storage columns for one deployment."""

    questions: Dict[str, str] = field(default_factory=lambda: dict(QUESTION_NAMES))
    columns: Dict[str, str] = field(default_factory=lambda: dict(STORAGE_COLUMNS))

    def question(self, attr: str) -> str:
        return self.questions[attr]

    def column(self, attr: str) -> str:
        return self.columns[attr]

    def required_questions(self) -> List[str]:
        return list(self.questions.values())

    def column_order(self) -> List[str]:
        return list(self.columns.values())

    @classmethod
    def load(cls, path: Optional[str]) -> "FieldMap":
        """Overlay a JSON file ({"questions": {...}, "columns": {...}}) on the defaults."""
        if not path:
            return cls()
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        questions = dict(QUESTION_NAMES)
        columns = dict(STORAGE_COLUMNS)
        for section, target in (("questions", questions), ("columns", columns)):
            overrides = data.get(section) or {}
            unknown = sorted(set(overrides) - set(target))
            if unknown:
                raise ValueError(f"Unknown {section} attributes in field map {path}: {unknown}")
            target.update({k: str(v) for k, v in overrides.items()})
        return cls(questions=questions, columns=columns)


DEFAULT_FIELD_MAP = FieldMap()
