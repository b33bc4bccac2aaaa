import copy

import pytest

ANSWERS = {
    "First Name": "Matt",
    "Last Name": "Smith",
    "Date of Birth": "1990-04-02",
    "Last 4 Digits of Social Security Number": "1234",
    "Address": {"address": "100 Main St", "city": "Laredo", "state": "TX", "zipCode": "78040"},
    "Phone Number": "+19565550100",
    "Phone Type": "Mobile",
    "Best Time to Contact": "Morning",
    "Email Address": "matt@example.com",
    "Preferred Contact Method": "Phone",
    "Visit Purpose": "Rental assistance",
    "How did you hear about us?": "Friend",
    "Ethnicity": "Hispanic or Latino",
    "Highest Education": "High School",
    "Household Type": "Single adult",
    "Military Status": "Never served",
    "Gender": "M",
    "Race": "White",
    "Are you proficient in English?": "Yes",
    "Marital Status": "Single",
    "Preferred Language": "English",
    "Current Living Status": "Renting",
    "Number of Cars": 1,
    "Disabled?": "No",
    "Number of Children Under 18": 0,
    "Number of People in Household": 1,
}


def fillout_body(answers=None, submission_id="0adb7f88-ea15-49ab-98e0-cf07a6fb2558"):
    answers = ANSWERS if answers is None else answers
    return {
        "formId": "nVNBoEosh2us",
        "formName": "Middleware Test Form",
        "submission": {
            "submissionId": submission_id,
            "submissionTime": "2025-07-16T14:14:01.335Z",
            "lastUpdatedAt": "2025-07-16T14:14:01.335Z",
            "questions": [
                {"id": f"q{i}", "name": name, "type": "ShortAnswer", "value": copy.deepcopy(value)}
                for i, (name, value) in enumerate(answers.items())
            ],
        },
    }


@pytest.fixture
def answers():
    return copy.deepcopy(ANSWERS)


@pytest.fixture
def body():
    return fillout_body()


class FakeCredentials:
    def __init__(self, secrets=None):
        self.secrets = dict(secrets or {})
        self.calls = []

    def get_secret(self, name):
        from client_intake.errors import SecretNotFoundError

        self.calls.append(name)
        if name not in self.secrets:
            raise SecretNotFoundError(name)
        return self.secrets[name]


@pytest.fixture
def credentials():
    return FakeCredentials(
        {
            "AirtableToken": '{"AIRTABLE_TOKEN": "pat-test"}',
            "OpenCageKey": '{"OPENCAGE_KEY": "oc-test"}',
            "WebhookSecret": '{"WEBHOOK_SECRET": "s3cret"}',
        }
    )
