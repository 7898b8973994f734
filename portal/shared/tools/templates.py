"""
Email Templates

Jinja2 templates for every outbound portal email. Each kind has a
subject, a plain-text body and an HTML body.
"""

from dataclasses import dataclass
from typing import Any

from jinja2 import DictLoader, Environment, StrictUndefined, UndefinedError, select_autoescape
import structlog

log = structlog.get_logger()

_TEMPLATES: dict[str, str] = {
    # --- document reminder ---
    "document_reminder.subject": "Document Reminder: {{ member_name }} - CalAIM Application",
    "document_reminder.txt": """\
Hello {{ referrer_name or "there" }},

The CalAIM application for {{ member_name }} is still missing the following documents:
{% for doc in missing_documents %}
  - {{ doc }}
{%- endfor %}

Please upload them here: {{ link }}

Thank you,
CalAIM Pathfinder
""",
    "document_reminder.html": """\
<p>Hello {{ referrer_name or "there" }},</p>
<p>The CalAIM application for <strong>{{ member_name }}</strong> is still missing the following documents:</p>
<ul>
{% for doc in missing_documents %}  <li>{{ doc }}</li>
{% endfor %}</ul>
<p><a href="{{ link }}">Upload documents</a></p>
<p>Thank you,<br>CalAIM Pathfinder</p>
""",
    # --- CS summary reminder ---
    "cs_summary_reminder.subject": "Action Required: CS Summary for {{ member_name }}",
    "cs_summary_reminder.txt": """\
Hello {{ referrer_name or "there" }},

The CS Member Summary for {{ member_name }} has not been completed yet.
The application cannot move forward until it is finished.

Complete it here: {{ link }}

Thank you,
CalAIM Pathfinder
""",
    "cs_summary_reminder.html": """\
<p>Hello {{ referrer_name or "there" }},</p>
<p>The CS Member Summary for <strong>{{ member_name }}</strong> has not been completed yet.
The application cannot move forward until it is finished.</p>
<p><a href="{{ link }}">Complete the CS Summary</a></p>
<p>Thank you,<br>CalAIM Pathfinder</p>
""",
    # --- social worker claim reminder ---
    "claim_reminder.subject": "Reminder: {{ claims|length }} claim{{ 's' if claims|length != 1 else '' }} awaiting your action",
    "claim_reminder.txt": """\
Hello {{ social_worker_name or "there" }},

The following visit claims still need your attention:
{% for claim in claims %}
  - {{ claim.claim_day }} at {{ claim.rcfe_name or claim.rcfe_id }}: {{ claim.visit_count }} visit(s), ${{ claim.total_amount }} ({{ claim.status }})
{%- endfor %}
{% if message %}
{{ message }}
{% endif %}
Review them here: {{ link }}
""",
    "claim_reminder.html": """\
<p>Hello {{ social_worker_name or "there" }},</p>
<p>The following visit claims still need your attention:</p>
<ul>
{% for claim in claims %}  <li>{{ claim.claim_day }} at {{ claim.rcfe_name or claim.rcfe_id }}: {{ claim.visit_count }} visit(s), ${{ claim.total_amount }} ({{ claim.status }})</li>
{% endfor %}</ul>
{% if message %}<p>{{ message }}</p>{% endif %}
<p><a href="{{ link }}">Review claims</a></p>
""",
    # --- staff notification ---
    "staff_notification.subject": "{{ title }}",
    "staff_notification.txt": """\
{{ message }}
{% if link %}
Open in the portal: {{ link }}
{% endif %}
""",
    "staff_notification.html": """\
<p>{{ message }}</p>
{% if link %}<p><a href="{{ link }}">Open in the portal</a></p>{% endif %}
""",
}

TEMPLATE_KINDS: frozenset[str] = frozenset(name.split(".")[0] for name in _TEMPLATES)

_env = Environment(
    loader=DictLoader(_TEMPLATES),
    autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
    undefined=StrictUndefined,
    keep_trailing_newline=True,
)


@dataclass(frozen=True)
class RenderedEmail:
    """Rendered subject and bodies."""

    subject: str
    text: str
    html: str


def render_email(kind: str, context: dict[str, Any]) -> RenderedEmail:
    """
    Render the subject and bodies for an email kind.

    Raises:
        ValueError: If the kind is unknown or the context lacks a variable
    """
    if kind not in TEMPLATE_KINDS:
        raise ValueError(
            f"Unknown email kind: '{kind}'. Valid kinds: {sorted(TEMPLATE_KINDS)}"
        )

    log.debug("rendering_email", kind=kind, variables=list(context.keys()))

    try:
        return RenderedEmail(
            subject=_env.get_template(f"{kind}.subject").render(**context).strip(),
            text=_env.get_template(f"{kind}.txt").render(**context),
            html=_env.get_template(f"{kind}.html").render(**context),
        )
    except UndefinedError as e:
        log.error(
            "template_render_failed",
            kind=kind,
            error=str(e),
            available_vars=list(context.keys()),
        )
        raise ValueError(f"Template render failed: {e}") from e
