"""
Email templates.

All templates use inline CSS for email client compatibility. Each template
function returns (subject, html_body, text_body).
"""

from __future__ import annotations

from decimal import Decimal
from html import escape

# Color constants
INDIGO = "#6366F1"
GREEN = "#10B981"
BG_PAGE = "#F8FAFC"
TEXT_PRIMARY = "#1E293B"
TEXT_SECONDARY = "#64748B"
TEXT_MUTED = "#94A3B8"
BORDER = "#E2E8F0"
RED = "#EF4444"


def _base_layout(content: str, heading: str, accent: str = INDIGO, app_name: str = "WriterHub") -> str:
    """Wrap content in the base email layout."""
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>{app_name}</title></head>
<body style="margin: 0; padding: 0; font-family: Arial, sans-serif;">
<div style="max-width: 600px; margin: 0 auto;">
    <div style="background: {accent}; padding: 30px; text-align: center;">
        <h1 style="color: #FFFFFF; margin: 0;">{heading}</h1>
    </div>
    <div style="padding: 30px; background: {BG_PAGE};">
        {content}
    </div>
    <div style="padding: 20px; text-align: center; color: {TEXT_MUTED}; font-size: 14px;">
        <p>{app_name} - Assignment Management System</p>
    </div>
</div>
</body>
</html>"""


def _button(url: str, label: str, color: str = INDIGO) -> str:
    return (
        f'<a href="{url}" style="display: inline-block; background: {color}; color: #FFFFFF; '
        f'padding: 14px 28px; text-decoration: none; border-radius: 8px; font-weight: bold;">{label}</a>'
    )


def _row(label: str, value: str) -> str:
    return (
        f'<tr><td style="padding: 8px 0; color: {TEXT_SECONDARY};">{label}</td>'
        f'<td style="padding: 8px 0; color: {TEXT_PRIMARY}; font-weight: bold;">{value}</td></tr>'
    )


def _card(inner: str) -> str:
    return (
        f'<div style="background: #FFFFFF; border-radius: 12px; padding: 24px; margin: 20px 0; '
        f'border: 1px solid {BORDER};">{inner}</div>'
    )


def new_assignment(
    writer_name: str,
    title: str,
    word_count: int,
    deadline: str,
    app_url: str,
) -> tuple[str, str, str]:
    """Sent to a writer when an assignment is posted in their domain."""
    subject = f"New Assignment: {title}"
    rows = _row("Word Count:", f"{word_count:,} words") + _row("Deadline:", escape(deadline))
    button = _button(app_url + "/job-board", "View Job Board")
    card = _card(
        f'<h3 style="color: {TEXT_PRIMARY}; margin-top: 0;">{escape(title)}</h3>'
        f'<table style="width: 100%;">{rows}</table>'
    )
    content = f"""\
<h2 style="color: {TEXT_PRIMARY};">Hello {escape(writer_name)}!</h2>
<p style="color: {TEXT_SECONDARY}; font-size: 16px;">A new writing task is available:</p>
{card}
{button}"""
    text_body = (
        f"Hello {writer_name},\n\n"
        f"A new writing task is available: {title}\n"
        f"Word count: {word_count:,}\nDeadline: {deadline}\n\n"
        f"Job board: {app_url}/job-board\n"
    )
    return subject, _base_layout(content, "New Assignment"), text_body


def payment_received(
    writer_name: str,
    amount: Decimal,
    method: str,
    reference: str | None,
    app_url: str,
) -> tuple[str, str, str]:
    """Sent to a writer when an admin records a payment."""
    amount_text = f"${amount:.2f}"
    subject = f"Payment Received: {amount_text}"
    method_text = method.replace("-", " ")
    ref_html = f'<p style="color: {TEXT_MUTED}; font-size: 14px;">Ref: {escape(reference)}</p>' if reference else ""
    button = _button(app_url, "View Dashboard", GREEN)
    card = _card(
        f'<p style="color: {TEXT_SECONDARY}; margin: 0; text-align: center;">Amount Paid</p>'
        f'<h2 style="color: {GREEN}; font-size: 36px; margin: 10px 0; text-align: center;">{amount_text}</h2>'
        f'<p style="color: {TEXT_SECONDARY}; margin: 0; text-align: center;">via {escape(method_text)}</p>{ref_html}'
    )
    content = f"""\
<h2 style="color: {TEXT_PRIMARY};">Hello {escape(writer_name)}!</h2>
<p style="color: {TEXT_SECONDARY}; font-size: 16px;">A payment has been processed for you:</p>
{card}
{button}"""
    text_body = f"Hello {writer_name},\n\nYou have been paid {amount_text} via {method_text}."
    if reference:
        text_body += f"\nReference: {reference}"
    return subject, _base_layout(content, "Payment Notification", GREEN), text_body + "\n"


def welcome_writer(writer_name: str, email: str, temp_password: str, app_url: str) -> tuple[str, str, str]:
    """Credentials for a newly created writer account."""
    subject = "Welcome to WriterHub!"
    rows = _row("Email:", escape(email)) + _row("Temporary Password:", f"<code>{escape(temp_password)}</code>")
    button = _button(app_url, "Login Now")
    rows_table = f'<table style="width: 100%;">{rows}</table>'
    content = f"""\
<h2 style="color: {TEXT_PRIMARY};">Hello {escape(writer_name)}!</h2>
<p style="color: {TEXT_SECONDARY}; font-size: 16px;">Your writer account has been created. Here are your login credentials:</p>
{_card(rows_table)}
<p style="color: {RED}; font-size: 14px;">Please change your password after your first login!</p>
{button}"""
    text_body = (
        f"Hello {writer_name},\n\n"
        f"Your writer account has been created.\n"
        f"Email: {email}\nTemporary password: {temp_password}\n\n"
        f"Please change your password after your first login: {app_url}\n"
    )
    return subject, _base_layout(content, "Welcome to WriterHub!"), text_body


def order_receipt(
    customer_name: str,
    order_number: str,
    package_name: str,
    pages: int,
    base_price: Decimal,
    discount_amount: Decimal,
    final_price: Decimal,
    payment_method: str | None,
) -> tuple[str, str, str]:
    """Thank-you receipt for a paid client order."""
    subject = f"Payment Receipt - Order {order_number}"
    rows = (
        _row("Order:", escape(order_number))
        + _row("Package:", escape(package_name))
        + _row("Pages:", str(pages))
        + _row("Subtotal:", f"${base_price:.2f}")
        + (_row("Member discount:", f"-${discount_amount:.2f}") if discount_amount else "")
        + _row("Total paid:", f"${final_price:.2f}")
        + _row("Paid via:", escape(payment_method or "-"))
    )
    rows_table = f'<table style="width: 100%;">{rows}</table>'
    content = f"""\
<h2 style="color: {TEXT_PRIMARY};">Thank you, {escape(customer_name)}!</h2>
<p style="color: {TEXT_SECONDARY}; font-size: 16px;">We have received your payment. Here is your receipt:</p>
{_card(rows_table)}"""
    text_body = (
        f"Thank you, {customer_name}!\n\n"
        f"Order {order_number} ({package_name}, {pages} pages)\n"
        f"Subtotal: ${base_price:.2f}\nDiscount: ${discount_amount:.2f}\nTotal paid: ${final_price:.2f}\n"
    )
    return subject, _base_layout(content, "Payment Receipt", GREEN), text_body
