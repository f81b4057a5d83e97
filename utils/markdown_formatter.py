"""Utilities for turning notification content into sanitized markdown, HTML, and plaintext."""
import re
from typing import Dict, List

import bleach
from markdown_it import MarkdownIt


# Single parser reused for performance; HTML disabled for safety
_md = MarkdownIt("commonmark", {"linkify": False, "typographer": True, "html": False}).enable(["table", "strikethrough"])

EMAIL_ALLOWED_TAGS = [
    "p",
    "ul",
    "ol",
    "li",
    "strong",
    "em",
    "h1",
    "h2",
    "h3",
    "h4",
    "table",
    "thead",
    "tbody",
    "tr",
    "th",
    "td",
    "hr",
    "a",
    "br",
]

ALLOWED_ATTRIBUTES = {
    "a": ["href", "title", "rel", "target"],
    "th": ["colspan", "rowspan", "align"],
    "td": ["colspan", "rowspan", "align"],
}


def _normalize_whitespace(text: str) -> str:
    cleaned = re.sub(r"[\r\t]+", " ", text or "")
    cleaned = re.sub(r" +", " ", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


def markdown_to_html(md_text: str) -> str:
    rendered = _md.render(_normalize_whitespace(md_text))
    return bleach.clean(rendered, tags=EMAIL_ALLOWED_TAGS, attributes=ALLOWED_ATTRIBUTES, strip=True)


def markdown_to_email_html(md_text: str) -> str:
    safe_html = markdown_to_html(md_text)
    return (
        "<div style=\"font-family: 'Segoe UI', Arial, sans-serif; font-size: 14px; line-height: 1.6; color: #0f172a;\">"
        f"{safe_html}"
        "</div>"
    )


def markdown_to_plaintext(md_text: str) -> str:
    rendered = markdown_to_html(md_text)
    text_only = bleach.clean(rendered, tags=[], attributes={}, strip=True)
    return re.sub(r"\s+", " ", text_only).strip()


def format_sections(sections: List[Dict[str, object]]) -> str:
    """Build markdown from an ordered list of sections."""
    parts: List[str] = []
    for section in sections:
        title = _normalize_whitespace(str(section.get("title", "") or ""))
        if title:
            parts.append(f"## {title}")
        body = section.get("body") or ""
        if body:
            parts.append(_normalize_whitespace(str(body)))
        bullets = section.get("bullets") or []
        if isinstance(bullets, list):
            for bullet in bullets:
                if bullet is None:
                    continue
                bullet_text = _normalize_whitespace(str(bullet))
                if bullet_text:
                    parts.append(f"- {bullet_text}")
        parts.append("")
    return "\n".join([p for p in parts if p.strip()])


def format_inspection_scheduled_markdown(context: Dict[str, object]) -> str:
    sections = [
        {
            "title": "Inspection Scheduled",
            "body": f"Dear {context.get('applicant_name') or 'Applicant'}, your fire safety inspection has been scheduled.",
            "bullets": [
                f"Application Number: {context.get('application_number', '')}",
                f"Building: {context.get('building_name') or 'N/A'}",
                f"Address: {context.get('building_address') or 'N/A'}",
                f"Date: {context.get('scheduled_date', '')}",
                f"Time: {context.get('scheduled_time', '')}",
            ],
        },
        {
            "title": "Before the inspection",
            "bullets": [
                "All fire safety equipment is accessible",
                "Fire exits are clear and unobstructed",
                "Relevant documents are available for review",
            ],
        },
    ]
    return format_sections(sections)


def format_decision_markdown(context: Dict[str, object]) -> str:
    approved = context.get("decision") == "approve"
    bullets = [f"Application Number: {context.get('application_number', '')}"]
    if approved:
        if context.get("noc_number"):
            bullets.append(f"NOC Number: {context['noc_number']}")
        if context.get("valid_until"):
            bullets.append(f"Valid Until: {context['valid_until']}")
        body = "Your application has been approved and your No-Objection Certificate has been issued."
    else:
        bullets.append(f"Reason: {context.get('rejection_reason', '')}")
        body = "Your application was rejected after review."
    sections = [
        {
            "title": "NOC Approved" if approved else "NOC Rejected",
            "body": f"Dear {context.get('applicant_name') or 'Applicant'}, {body[0].lower()}{body[1:]}",
            "bullets": bullets,
        }
    ]
    if approved and context.get("noc_number"):
        sections.append(
            {
                "title": "Verification",
                "body": "Anyone can confirm this certificate on the public verification page using the NOC number.",
            }
        )
    return format_sections(sections)


def format_revocation_markdown(context: Dict[str, object]) -> str:
    sections = [
        {
            "title": "NOC Revoked",
            "body": f"Dear {context.get('applicant_name') or 'Applicant'}, your No-Objection Certificate has been revoked.",
            "bullets": [
                f"NOC Number: {context.get('noc_number', '')}",
                f"Reason: {context.get('reason', '')}",
            ],
        }
    ]
    return format_sections(sections)
