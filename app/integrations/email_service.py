"""Email notifications for the approval workflow."""
from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Any, Dict, Optional

from app.config import settings
from app.logic.exceptions import NotificationError

logger = logging.getLogger(__name__)

SUBMISSION_CONFIRMATION = "submission_confirmation"
APPROVER_ALERT = "approver_alert"
APPROVAL_DECISION = "approval_decision"


class EmailNotifier:
    """Fire-and-forget email delivery; failures are logged and never propagated."""

    def __init__(
        self,
        server: Optional[str] = settings.SMTP_SERVER,
        port: int = settings.SMTP_PORT,
        username: Optional[str] = settings.SMTP_USERNAME,
        password: Optional[str] = settings.SMTP_PASSWORD,
        use_tls: bool = settings.SMTP_USE_TLS,
        from_email: Optional[str] = settings.SMTP_FROM_EMAIL,
    ):
        self.server = server
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_email = from_email or username

    @property
    def is_configured(self) -> bool:
        return bool(self.server and self.username and self.password)

    def notify(self, recipient_email: Optional[str], template_kind: str, context: Dict[str, Any]) -> bool:
        """Render ``template_kind`` with ``context`` and send it to ``recipient_email``."""
        if not recipient_email:
            logger.warning(f"Skipping {template_kind} notification: no recipient")
            return False
        try:
            subject, html_body, text_body = render_template(template_kind, context)
        except KeyError as exc:
            logger.error(f"Cannot render {template_kind} notification, missing {exc}")
            return False

        if not self.is_configured:
            logger.warning(f"SMTP is not configured; {template_kind} email to {recipient_email} not sent")
            return False

        try:
            self._send_via_smtp(recipient_email, subject, html_body, text_body)
        except NotificationError as exc:
            logger.error(f"Failed to send {template_kind} email to {recipient_email}: {exc.message}")
            return False
        return True

    def _send_via_smtp(self, recipient: str, subject: str, html_body: str, text_body: str) -> None:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = f"ExpenseFlow System <{self.from_email}>"
        message["To"] = recipient
        message.set_content(text_body)
        message.add_alternative(html_body, subtype="html")

        try:
            with smtplib.SMTP(self.server, self.port, timeout=10) as smtp:
                if self.use_tls:
                    smtp.starttls()
                smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationError(str(exc)) from exc
        logger.info(f"Email sent to {recipient}: {subject}")


def _format_amount(context: Dict[str, Any]) -> str:
    return f"{context['currency']} {float(context['amount']):.2f}"


def render_template(template_kind: str, context: Dict[str, Any]) -> tuple[str, str, str]:
    """Return ``(subject, html_body, text_body)`` for a notification."""
    if template_kind == SUBMISSION_CONFIRMATION:
        amount = _format_amount(context)
        subject = "Expense Submitted Successfully - ExpenseFlow"
        text_body = (
            f"Hi {context['employee_name']},\n\n"
            f"Your expense has been submitted.\n"
            f"Amount: {amount}\n"
            f"Category: {context['category_name']}\n"
            f"Approval steps: {context['approval_steps']}\n"
        )
        html_body = (
            "<div style=\"font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;\">"
            "<h2>Expense Submitted Successfully!</h2>"
            f"<p>Hi {context['employee_name']},</p>"
            "<p>Your expense has been submitted.</p>"
            f"<p><strong>Amount:</strong> {amount}</p>"
            f"<p><strong>Category:</strong> {context['category_name']}</p>"
            "</div>"
        )
        return subject, html_body, text_body

    if template_kind == APPROVER_ALERT:
        amount = _format_amount(context)
        subject = "New Expense Awaiting Your Approval - ExpenseFlow"
        text_body = (
            f"Hi {context['approver_name']},\n\n"
            f"New expense from {context['employee_name']} requires your approval.\n"
            f"Amount: {amount}\n"
            f"Review it at {settings.FRONTEND_URL}/approvals\n"
        )
        html_body = (
            "<div style=\"font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;\">"
            "<h2>New Expense Requires Approval</h2>"
            f"<p>New expense from {context['employee_name']}</p>"
            f"<p><strong>Amount:</strong> {amount}</p>"
            f"<p><a href=\"{settings.FRONTEND_URL}/approvals\">Review pending approvals</a></p>"
            "</div>"
        )
        return subject, html_body, text_body

    if template_kind == APPROVAL_DECISION:
        status = "Approved" if context["action"] == "approve" else "Rejected"
        verb = "approved" if context["action"] == "approve" else "rejected"
        comments = context.get("comments")
        subject = f"Expense {status} - ExpenseFlow"
        text_body = (
            f"Hi {context['employee_name']},\n\n"
            f"Your expense has been {verb} by {context['approver_name']} ({context['approver_role']}).\n"
            f"Current status: {context['expense_status']}\n"
        )
        if comments:
            text_body += f"Comments: {comments}\n"
        html_body = (
            "<div style=\"font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;\">"
            f"<h2>Expense {status}</h2>"
            f"<p>Hi {context['employee_name']},</p>"
            f"<p>Your expense has been {verb} by {context['approver_name']} ({context['approver_role']}).</p>"
            + (f"<p><strong>Comments:</strong> {comments}</p>" if comments else "")
            + "</div>"
        )
        return subject, html_body, text_body

    raise KeyError(template_kind)


email_notifier = EmailNotifier()


def get_notifier() -> EmailNotifier:
    return email_notifier
