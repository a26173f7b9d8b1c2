"""Email templates for CourseHub.

HTML templates share one layout:
- Primary: #4F46E5
- Background: #F8FAFC
- Card: #FFFFFF
- Text: #0F172A
- Muted: #64748B
- Border: #E2E8F0
"""

from datetime import datetime
from decimal import Decimal
from html import escape


# ==============================================================================
# Base Template
# ==============================================================================

BASE_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title} - CourseHub</title>
  <style>
    @media only screen and (max-width: 620px) {{
      .content-table {{
        width: 100% !important;
      }}
      .content-padding {{
        padding: 24px 20px !important;
      }}
    }}
  </style>
</head>
<body style="margin: 0; padding: 0; background-color: #F8FAFC; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif;">
  <table role="presentation" width="100%" cellpadding="0" cellspacing="0" style="background-color: #F8FAFC;">
    <tr>
      <td align="center" style="padding: 40px 20px;">
        <table role="presentation" width="600" cellpadding="0" cellspacing="0" style="background-color: #FFFFFF; border-radius: 12px; max-width: 600px;" class="content-table">
          <tr>
            <td style="padding: 32px 40px 24px; text-align: center; border-bottom: 1px solid #E2E8F0;">
              <h1 style="margin: 0; font-size: 28px; font-weight: 700; color: #4F46E5;">CourseHub</h1>
            </td>
          </tr>
          <tr>
            <td style="padding: 40px;" class="content-padding">
              {content}
            </td>
          </tr>
          <tr>
            <td style="padding: 24px 40px; border-top: 1px solid #E2E8F0;">
              <p style="margin: 0; font-size: 12px; color: #64748B; text-align: center; line-height: 1.6;">
                &copy; {year} CourseHub. All rights reserved.<br>
                This email was sent automatically, please do not reply.
              </p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
"""

FOOTER_TEXT = """
---
© {year} CourseHub. All rights reserved.
This email was sent automatically, please do not reply.
"""


def _wrap(title: str, content: str) -> str:
    return BASE_TEMPLATE.format(title=title, content=content, year=datetime.now().year)


def format_amount(amount: Decimal, currency: str) -> str:
    """``49.99 USD``"""
    return f"{Decimal(amount):.2f} {currency.upper()}"


# ==============================================================================
# Template: Payment Confirmation
# ==============================================================================

PAYMENT_CONFIRMATION_CONTENT = """
<h1 style="margin: 0 0 16px; font-size: 24px; font-weight: 600; color: #0F172A;">
  Payment Confirmation
</h1>

<p style="margin: 0 0 24px; font-size: 16px; color: #334155; line-height: 1.6;">
  Thank you for your purchase. Your payment was received.
</p>

<div style="background-color: #EEF2FF; border-radius: 12px; padding: 20px; margin: 0 0 24px;">
  <p style="margin: 0 0 8px; font-size: 14px; color: #64748B;">Course</p>
  <p style="margin: 0 0 16px; font-size: 16px; font-weight: 600; color: #0F172A;">{course_title}</p>
  <p style="margin: 0 0 8px; font-size: 14px; color: #64748B;">Amount</p>
  <p style="margin: 0 0 16px; font-size: 16px; font-weight: 600; color: #0F172A;">{amount}</p>
  <p style="margin: 0 0 8px; font-size: 14px; color: #64748B;">Reference</p>
  <p style="margin: 0; font-size: 13px; color: #0F172A; font-family: 'Courier New', Courier, monospace;">{payment_id}</p>
</div>
"""


def render_payment_confirmation(
    course_title: str,
    amount: Decimal,
    currency: str,
    payment_id: str,
) -> tuple[str, str]:
    """Render payment receipt email.

    Returns:
        Tuple of (html_content, plain_text_content)
    """
    formatted = format_amount(amount, currency)
    content = PAYMENT_CONFIRMATION_CONTENT.format(
        course_title=escape(course_title),
        amount=formatted,
        payment_id=escape(payment_id),
    )

    plain_text = f"""
Payment Confirmation - CourseHub

Thank you for your purchase. Your payment was received.

Course: {course_title}
Amount: {formatted}
Reference: {payment_id}
{FOOTER_TEXT.format(year=datetime.now().year)}"""
    return _wrap("Payment Confirmation", content), plain_text.strip()


# ==============================================================================
# Template: Enrollment Confirmation
# ==============================================================================

ENROLLMENT_CONFIRMATION_CONTENT = """
<h1 style="margin: 0 0 16px; font-size: 24px; font-weight: 600; color: #0F172A;">
  You're enrolled!
</h1>

<p style="margin: 0 0 24px; font-size: 16px; color: #334155; line-height: 1.6;">
  You now have full access to <strong style="color: #0F172A;">{course_title}</strong>.
</p>

<div style="text-align: center; margin: 32px 0;">
  <a href="{course_url}" style="display: inline-block; background-color: #4F46E5; color: #FFFFFF; text-decoration: none; padding: 14px 32px; border-radius: 8px; font-size: 16px; font-weight: 600;">
    Start learning
  </a>
</div>
"""


def render_enrollment_confirmation(course_title: str, course_url: str) -> tuple[str, str]:
    """Render enrollment confirmation email.

    Returns:
        Tuple of (html_content, plain_text_content)
    """
    content = ENROLLMENT_CONFIRMATION_CONTENT.format(
        course_title=escape(course_title),
        course_url=escape(course_url, quote=True),
    )

    plain_text = f"""
You're enrolled! - CourseHub

You now have full access to {course_title}.

Start learning: {course_url}
{FOOTER_TEXT.format(year=datetime.now().year)}"""
    return _wrap("Enrollment Confirmation", content), plain_text.strip()
