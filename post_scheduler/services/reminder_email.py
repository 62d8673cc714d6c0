"""Reminder email: subject, relative time text and HTML body."""
import math
from datetime import datetime
from html import escape
from typing import Optional
from zoneinfo import ZoneInfo

from post_scheduler.db_types import ensure_utc


def time_until_text(scheduled_for: datetime, now: datetime) -> str:
    """Human phrase for how far away the post is. Minutes and hours round half up."""
    seconds = (ensure_utc(scheduled_for) - ensure_utc(now)).total_seconds()
    minutes = math.floor(seconds / 60 + 0.5)
    hours = math.floor(minutes / 60 + 0.5)
    if minutes < 0:
        return "now (overdue)"
    if minutes == 0:
        return "now"
    if hours >= 2:
        return f"in {hours} hours"
    if minutes >= 60:
        return "in about 1 hour"
    if minutes > 30:
        return "in 30-60 minutes"
    return f"in about {minutes} minutes"


def format_scheduled_time(scheduled_for: datetime, timezone_name: str) -> str:
    """e.g. 'Monday, March 3, 2025 at 02:30 PM' in the display timezone."""
    local = ensure_utc(scheduled_for).astimezone(ZoneInfo(timezone_name))
    return f"{local:%A}, {local:%B} {local.day}, {local.year} at {local:%I:%M %p}"


def render_subject(group_name: Optional[str]) -> str:
    return f"Time to Post! - {group_name or 'your group'}"


def render_html(
    full_name: Optional[str],
    group_name: Optional[str],
    group_url: Optional[str],
    content: str,
    scheduled_for: datetime,
    now: datetime,
    app_url: str,
    timezone_name: str,
    post_id: str,
) -> str:
    """HTML body. Every user-supplied value is escaped."""
    base = app_url.rstrip("/")
    if group_url:
        button = f'<a href="{escape(group_url)}" style="{_BUTTON_STYLE}">Go to Facebook Group &rarr;</a>'
    else:
        button = f'<a href="{escape(base)}/dashboard/posts" style="{_BUTTON_STYLE}">View All Posts &rarr;</a>'
    mark_posted_url = f"{base}/dashboard/posts?mark_posted={escape(post_id)}"
    return _TEMPLATE.format(
        name=escape(full_name or "there"),
        time_until=escape(time_until_text(scheduled_for, now)),
        scheduled=escape(format_scheduled_time(scheduled_for, timezone_name)),
        group=escape(group_name or "Unknown Group"),
        content=escape(content),
        button=button,
        mark_posted_url=escape(mark_posted_url),
        app_url=escape(base),
    )


_BUTTON_STYLE = (
    "display:inline-block;padding:16px 32px;background-color:#dc2626;color:#ffffff;"
    "text-decoration:none;border-radius:8px;font-weight:600;font-size:16px;"
)

_TEMPLATE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Time to Post!</title></head>
<body style="margin:0;padding:0;font-family:Arial,sans-serif;background-color:#f3f4f6;">
<table role="presentation" style="width:100%;border-collapse:collapse;"><tr><td align="center" style="padding:40px 0;">
<table role="presentation" style="width:600px;border-collapse:collapse;background-color:#ffffff;border-radius:8px;">
<tr><td style="padding:40px 40px 20px 40px;background-color:#dc2626;border-radius:8px 8px 0 0;">
<h1 style="margin:0;color:#ffffff;font-size:28px;text-align:center;">Time to Post!</h1>
<p style="margin:10px 0 0 0;color:#fee2e2;font-size:16px;text-align:center;">Your scheduled post is ready</p>
</td></tr>
<tr><td style="padding:40px;">
<p style="color:#374151;font-size:16px;">Hi <strong>{name}</strong>,</p>
<p style="color:#374151;font-size:16px;">Your scheduled Facebook post is coming up <strong>{time_until}</strong>!</p>
<p style="color:#6b7280;font-size:14px;font-weight:600;text-transform:uppercase;">Scheduled For</p>
<p style="color:#111827;font-size:18px;font-weight:bold;">{scheduled}</p>
<p style="color:#6b7280;font-size:14px;font-weight:600;text-transform:uppercase;">Facebook Group</p>
<p style="color:#111827;font-size:16px;font-weight:600;">{group}</p>
<p style="color:#6b7280;font-size:14px;font-weight:600;text-transform:uppercase;">Your Post Content (Ready to Copy!)</p>
<pre style="white-space:pre-wrap;word-wrap:break-word;background-color:#f9fafb;border:2px solid #e5e7eb;border-radius:8px;padding:20px;">{content}</pre>
<p style="text-align:center;margin:30px 0;">{button}</p>
<p style="color:#6b7280;font-size:13px;">Already published? <a href="{mark_posted_url}" style="color:#dc2626;">Mark it as posted</a>.</p>
</td></tr>
<tr><td style="padding:20px 40px;background-color:#f9fafb;border-top:1px solid #e5e7eb;">
<p style="margin:0;color:#6b7280;font-size:12px;text-align:center;">This is an automated reminder from UCG Social Scheduler<br>
<a href="{app_url}" style="color:#dc2626;">{app_url}</a></p>
</td></tr>
</table></td></tr></table>
</body>
</html>
"""
