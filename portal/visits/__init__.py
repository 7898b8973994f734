"""Social worker visit records."""

from portal.visits.reports import monthly_detail, monthly_summary, visits_by_ids
from portal.visits.tools import check_member_eligibility, delete_visit, save_visit_draft

__all__ = [
    "check_member_eligibility",
    "delete_visit",
    "monthly_detail",
    "monthly_summary",
    "save_visit_draft",
    "visits_by_ids",
]
