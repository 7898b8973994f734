"""
SendReminders Lambda

Daily Lambda triggered by an EventBridge Scheduled Rule that emails
referrers about missing application documents and incomplete CS
summaries.

Components:
- handler: Lambda entry point for the scheduled trigger
- predicates: due-date and cooldown rules per reminder job
"""

from lambdas.send_reminders.handler import lambda_handler
from lambdas.send_reminders.predicates import ReminderKind, build_policies, evaluate

__all__ = [
    "lambda_handler",
    "ReminderKind",
    "build_policies",
    "evaluate",
]
