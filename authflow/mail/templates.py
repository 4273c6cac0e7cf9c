"""HTML bodies for account lifecycle emails.

Placeholders use ``{name}`` syntax and are substituted by ``render``.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass

_PLACEHOLDER = re.compile(r"\{(\w+)\}")

_LAYOUT = """<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>{title}</title></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background: linear-gradient(to right, #4CAF50, #45a049); padding: 20px; text-align: center;">
    <h1 style="color: white; margin: 0;">{title}</h1>
  </div>
  <div style="background-color: #f9f9f9; padding: 20px; border-radius: 0 0 5px 5px;">
{body}
    <p>Best regards,<br>Your App Team</p>
  </div>
</body>
</html>
"""


@dataclass(frozen=True)
class EmailTemplate:
    """Subject, provider category and HTML body of one email kind."""

    subject: str
    category: str
    body: str

    def render(self, values: dict[str, str]) -> str:
        """Substitute escaped ``values`` into the body; unknown keys stay as-is."""

        def _replace(match: re.Match[str]) -> str:
            key = match.group(1)
            if key not in values:
                return match.group(0)
            return html.escape(values[key])

        return _PLACEHOLDER.sub(_replace, self.body)


def _page(title: str, body: str) -> str:
    return _LAYOUT.replace("{title}", title).replace("{body}", body)


VERIFICATION_EMAIL = EmailTemplate(
    subject="Verify your email address",
    category="Email Verification",
    body=_page(
        "Verify Your Email",
        """    <p>Hello {username},</p>
    <p>Thank you for signing up! Your verification code is:</p>
    <div style="text-align: center; margin: 30px 0;">
      <span style="font-size: 32px; font-weight: bold; letter-spacing: 5px; color: #4CAF50;">{verificationCode}</span>
    </div>
    <p>Enter this code on the verification page to complete your registration.</p>
    <p>This code will expire in 24 hours for security reasons.</p>
    <p>If you didn't create an account with us, please ignore this email.</p>""",
    ),
)

WELCOME_EMAIL = EmailTemplate(
    subject="Welcome to Our Service",
    category="Welcome Email",
    body=_page(
        "Welcome!",
        """    <p>Hello {username},</p>
    <p>Your email address has been verified and your account is ready to use.</p>""",
    ),
)

PASSWORD_RESET_REQUEST_EMAIL = EmailTemplate(
    subject="Reset Your Password",
    category="Password Reset",
    body=_page(
        "Password Reset",
        """    <p>Hello {username},</p>
    <p>We received a request to reset your password. If you didn't make this request, please ignore this email.</p>
    <p>To reset your password, click the button below:</p>
    <div style="text-align: center; margin: 30px 0;">
      <a href="{resetURL}" style="background-color: #4CAF50; color: white; padding: 12px 20px; text-decoration: none; border-radius: 5px; font-weight: bold;">Reset Password</a>
    </div>
    <p>This link will expire in 1 hour for security reasons.</p>""",
    ),
)

PASSWORD_RESET_SUCCESS_EMAIL = EmailTemplate(
    subject="Password Reset Successful",
    category="Password Reset Success",
    body=_page(
        "Password Reset Successful",
        """    <p>Hello {username},</p>
    <p>Your password has been successfully reset.</p>
    <p>If you did not initiate this password reset, please contact our support team immediately.</p>""",
    ),
)
