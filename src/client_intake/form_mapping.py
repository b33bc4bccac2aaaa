from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

from .dispatch_payload import Submission
from .errors import InvalidFieldError, MissingFieldError
from .schema import (
    ADDRESS_PARTS,
    COLONIAS_RESIDENT,
    DEFAULT_FIELD_MAP,
    GENDER_CODES,
    RELATIONSHIP,
    RURAL_AREA_STATUS,
    FieldMap,
)
from .util import last_four, pad_ssn, strip_country_code, to_iso_date

# Attributes copied from the answer as-is.
PASSTHROUGH_ATTRS = (
    "first_name",
    "last_name",
    "phone_type",
    "best_time_to_contact",
    "email",
    "preferred_contact_method",
    "visit_purpose",
    "referral_source",
    "ethnicity",
    "highest_education",
    "household_type",
    "military_status",
    "race",
    "english_proficiency",
    "marital_status",
    "preferred_language",
    "current_living_status",
    "num_cars",
    "is_disabled",
    "num_dependents",
    "household_size",
)


@dataclass(frozen=True)
class AnswerMap:
    submission_id: str
    submission_time: Optional[str]
    answers: Mapping[str, Any]

    def lookup(self, name: str) -> Any:
        """Exact, case-sensitive match on the question name."""
        try:
            return self.answers[name]
        except KeyError:
            raise MissingFieldError([name]) from None


@dataclass(frozen=True)
class ClientRecord:
    fillout_id: str
    # basic
    first_name: Any
    last_name: Any
    date_of_birth: str
    ssn: str
    # contact
    phone_number: str
    phone_type: Any
    best_time_to_contact: Any
    email: Any
    preferred_contact_method: Any
    # location
    street_address: Any
    city: Any
    state: Any
    zipcode: Any
    county: Optional[str]
    rural_area_status: str
    # demographics
    ethnicity: Any
    highest_education: Any
    military_status: Any
    gender: Any
    race: Any
    is_disabled: Any
    english_proficiency: Any
    marital_status: Any
    preferred_language: Any
    # family
    household_type: Any
    household_size: Any
    num_dependents: Any
    # housing
    current_living_status: Any
    visit_purpose: Any

    num_cars: Any
    referral_source: Any
    colonias_resident: str
    relationship: str

    def with_county(self, county: Optional[str]) -> "ClientRecord":
        return replace(self, county=county)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DedupKey:
    first_name: Any
    last_name: Any
    date_of_birth: str
    ssn_last_four: str


def extract(submission: Submission, field_map: FieldMap = DEFAULT_FIELD_MAP) -> AnswerMap:
    answers: Dict[str, Any] = {}
    for q in submission.questions:
        # first occurrence wins
        answers.setdefault(q.name, q.value)

    missing = [name for name in field_map.required_questions() if name not in answers]
    if missing:
        raise MissingFieldError(missing)

    return AnswerMap(
        submission_id=submission.submission_id,
        submission_time=submission.submission_time,
        answers=answers,
    )


def expand_gender(value: Any) -> Any:
    if isinstance(value, str):
        return GENDER_CODES.get(value, value)
    return value


def normalize(answers: AnswerMap, field_map: FieldMap = DEFAULT_FIELD_MAP) -> ClientRecord:
    """Build the storage record from a complete AnswerMap. County is left unset."""

    def answer(attr: str) -> Any:
        return answers.lookup(field_map.question(attr))

    values: Dict[str, Any] = {attr: answer(attr) for attr in PASSTHROUGH_ATTRS}

    # Names are part of the dedup key; an unanswered question must not become "None".
    for attr in ("first_name", "last_name"):
        if values[attr] is None or not str(values[attr]).strip():
            raise InvalidFieldError(field_map.question(attr), "empty")

    dob_q = field_map.question("date_of_birth")
    try:
        values["date_of_birth"] = to_iso_date(answers.lookup(dob_q))
    except ValueError as e:
        raise InvalidFieldError(dob_q, str(e)) from e

    ssn = answer("ssn")
    if ssn is None or str(ssn).strip() == "":
        raise InvalidFieldError(field_map.question("ssn"), "empty")
    values["ssn"] = pad_ssn(ssn)

    phone = answer("phone_number")
    if not isinstance(phone, str):
        raise InvalidFieldError(field_map.question("phone_number"), "expected a string")
    values["phone_number"] = strip_country_code(phone)

    values["gender"] = expand_gender(answer("gender"))

    address = answer("address")
    if not isinstance(address, dict):
        raise InvalidFieldError(field_map.question("address"), "expected an address object")
    for attr, key in ADDRESS_PARTS.items():
        values[attr] = address.get(key)

    return ClientRecord(
        fillout_id=answers.submission_id,
        county=None,
        rural_area_status=RURAL_AREA_STATUS,
        colonias_resident=COLONIAS_RESIDENT,
        relationship=RELATIONSHIP,
        **values,
    )


def compute_dedup_key(record: ClientRecord) -> DedupKey:
    # Last four only; stores match it against the end of their SSN column.
    return DedupKey(
        first_name=record.first_name,
        last_name=record.last_name,
        date_of_birth=record.date_of_birth,
        ssn_last_four=last_four(record.ssn),
    )


def to_storage_fields(record: ClientRecord, field_map: FieldMap = DEFAULT_FIELD_MAP) -> Dict[str, Any]:
    """Column name -> value. Unset values (e.g. a county that could not be found) are omitted."""
    out: Dict[str, Any] = {}
    for f in fields(record):
        value = getattr(record, f.name)
        if value is None:
            continue
        out[field_map.column(f.name)] = value
    return out
