"""
Application document checks.

Applications list their forms with a status; an application created
before its form list was populated falls back to the default required
forms for its pathway.
"""

from typing import Final

from portal.shared.models.dynamo import ApplicationRecord, FormEntry

COMPLETED: Final = "Completed"
INFO_FORM_TYPE: Final = "Info"
CS_SUMMARY_FORMS: Final = frozenset({"CS Member Summary", "CS Summary"})

BASE_REQUIRED_FORMS: Final[tuple[str, ...]] = (
    "CS Member Summary",
    "Waivers & Authorizations",
    "Room and Board Commitment",
    "Proof of Income",
    "LIC 602A - Physician's Report",
    "Medicine List",
    "Eligibility Screenshot",
)


def default_required_forms(pathway: str) -> list[str]:
    """
    Required forms for a pathway.

    >>> default_required_forms("SNF Diversion")[-1]
    'Declaration of Eligibility'
    >>> default_required_forms("SNF Transition")[-1]
    'SNF Facesheet'
    """
    if "diversion" in (pathway or "").lower():
        return [*BASE_REQUIRED_FORMS, "Declaration of Eligibility"]
    return [*BASE_REQUIRED_FORMS, "SNF Facesheet"]


def _forms_by_name(application: ApplicationRecord) -> dict[str, FormEntry]:
    return {form.name.strip(): form for form in application.forms if form.name.strip()}


def missing_required_documents(application: ApplicationRecord) -> list[str]:
    """
    Names of required documents that are not completed.

    The CS summary is tracked by its own reminder and Info-type entries
    never count as missing.
    """
    forms = _forms_by_name(application)
    required = list(forms) or default_required_forms(application.pathway)

    missing = []
    for name in required:
        name = name.strip()
        if not name or name in CS_SUMMARY_FORMS:
            continue
        form = forms.get(name)
        if form is None:
            missing.append(name)
        elif form.type == INFO_FORM_TYPE:
            continue
        elif form.status != COMPLETED:
            missing.append(name)
    return missing


def has_completed_cs_summary(application: ApplicationRecord) -> bool:
    if application.cs_summary_complete:
        return True
    return any(
        form.name in CS_SUMMARY_FORMS and form.status == COMPLETED
        for form in application.forms
    )


def application_progress(application: ApplicationRecord) -> int:
    """Percentage of non-Info forms completed, rounded down."""
    counted = [form for form in application.forms if form.type != INFO_FORM_TYPE]
    if not counted:
        return 0
    completed = sum(1 for form in counted if form.status == COMPLETED)
    return completed * 100 // len(counted)
