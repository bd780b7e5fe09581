"""
Certificate email templates.

Bodies are built with f-strings; every interpolated value goes through
``html.escape`` first.
"""

from __future__ import annotations

import html
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

ACCENT_COLOR = "#16a34a"
SUPPORT_EMAIL = "support@lets-assist.com"


def resolve_timezone(name: str | None, default_name: str) -> ZoneInfo:
    for candidate in (name, default_name):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            continue
    return ZoneInfo("UTC")


def _format_time(value: datetime) -> str:
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix} {value.tzname()}"


def format_event_range(
    event_start: datetime | None,
    event_end: datetime | None,
    tz: ZoneInfo,
) -> tuple[str, str] | None:
    """Return ("January 10, 2024", "1:00 AM PST - 5:00 AM PST") in ``tz``."""
    if event_start is None or event_end is None:
        return None
    if event_start.tzinfo is None:
        event_start = event_start.replace(tzinfo=timezone.utc)
    if event_end.tzinfo is None:
        event_end = event_end.replace(tzinfo=timezone.utc)

    local_start = event_start.astimezone(tz)
    local_end = event_end.astimezone(tz)
    date_str = f"{local_start:%B} {local_start.day}, {local_start.year}"
    return date_str, f"{_format_time(local_start)} - {_format_time(local_end)}"


def certificate_url(site_url: str, certificate_id: str) -> str:
    return f"{site_url.rstrip('/')}/certificates/{certificate_id}"


def certificate_published_subject(project_title: str) -> str:
    return f"[Auto-Published] Your volunteer certificate for {project_title} is ready!"


def _detail_row(label: str, value: str) -> str:
    return (
        '<div style="margin-bottom: 8px; font-size: 15px;">'
        f'<span style="font-weight: 600; color: #374151; display: inline-block; width: 120px;">{label}</span>'
        f'<span style="color: #555;">{value}</span>'
        "</div>"
    )


def render_certificate_published_html(
    *,
    volunteer_name: str,
    project_title: str,
    certificate_id: str,
    site_url: str,
    event_range: tuple[str, str] | None,
    issued_year: int | None = None,
) -> str:
    url = html.escape(certificate_url(site_url, certificate_id))
    name = html.escape(volunteer_name)
    title = html.escape(project_title)
    cert_id = html.escape(certificate_id)
    year = issued_year or datetime.now(timezone.utc).year

    detail_rows = [_detail_row("Project:", title)]
    if event_range is not None:
        detail_rows.append(_detail_row("Date:", html.escape(event_range[0])))
        detail_rows.append(_detail_row("Time:", html.escape(event_range[1])))
    detail_rows.append(_detail_row("Certificate ID:", cert_id))
    details_html = "\n".join(detail_rows)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Your Volunteer Certificate is Ready!</title>
</head>
<body style="margin: 0; padding: 0; background-color: #f9f9f9; color: #333; font-family: 'Inter', Arial, sans-serif; line-height: 1.6;">
    <div style="background-color: #ffffff;">
        <div style="padding: 32px 24px;">
            <h1 style="color: #222; font-size: 28px; font-weight: 700; margin: 0 0 20px 0;">&#127881; Your Certificate is Ready!</h1>
            <p style="color: #555; font-size: 16px;">Hi {name},</p>
            <p style="color: #555; font-size: 16px;">Great news! Your volunteer certificate for <strong>{title}</strong> has been automatically published and is now available to view.</p>
            <div style="background-color: #f0f9ff; border: 1px solid #0ea5e9; border-radius: 6px; padding: 16px; margin: 20px 0;">
                <p style="margin: 0; color: #0369a1; font-weight: 500;">Automatic Publishing</p>
                <p style="margin: 4px 0 0 0; color: #0369a1; font-size: 14px;">This certificate was automatically generated 48 hours after the event ended, as no manual adjustments were needed.</p>
            </div>
            <div style="background-color: #f8f9fa; border-radius: 6px; padding: 20px; margin: 24px 0; border-left: 4px solid {ACCENT_COLOR};">
                {details_html}
            </div>
            <div style="text-align: center;">
                <a href="{url}" style="display: inline-block; background-color: {ACCENT_COLOR}; color: #fff; text-decoration: none; padding: 12px 32px; border-radius: 6px; font-weight: 600; font-size: 14px; margin: 24px 0;">View My Certificate</a>
            </div>
            <p style="font-size: 14px; color: #777;">You can view, download, and share your certificate using the link above. This certificate serves as official recognition of your volunteer contribution.</p>
            <div style="margin-top: 28px; padding-top: 16px; border-top: 1px solid #f0f0f0; font-size: 15px;">
                <p><strong>Having trouble with the button?</strong></p>
                <p style="font-size: 14px; color: #777;">You can also use this direct link: <a href="{url}" style="word-break: break-all; color: {ACCENT_COLOR};">{url}</a></p>
            </div>
        </div>
        <div style="padding: 20px 24px; text-align: center; font-size: 14px; color: #777; background-color: #f9fafb; border-top: 1px solid #f0f0f0;">
            <p>&copy; {year} Let's Assist. All rights reserved.</p>
            <p>Questions? Contact us at <a href="mailto:{SUPPORT_EMAIL}" style="color: {ACCENT_COLOR}; font-weight: 500;">{SUPPORT_EMAIL}</a></p>
        </div>
    </div>
</body>
</html>
"""


def render_certificate_published_text(
    *,
    volunteer_name: str,
    project_title: str,
    certificate_id: str,
    site_url: str,
    event_range: tuple[str, str] | None,
) -> str:
    lines = [
        f"Hi {volunteer_name},",
        "",
        f"Your volunteer certificate for {project_title} has been automatically published.",
        "",
        f"Project: {project_title}",
    ]
    if event_range is not None:
        lines.append(f"Date: {event_range[0]}")
        lines.append(f"Time: {event_range[1]}")
    lines.extend(
        [
            f"Certificate ID: {certificate_id}",
            "",
            f"View your certificate: {certificate_url(site_url, certificate_id)}",
            "",
            f"Questions? Contact us at {SUPPORT_EMAIL}",
        ]
    )
    return "\n".join(lines)
