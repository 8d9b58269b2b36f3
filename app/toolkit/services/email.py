"""
Email service for centralized email sending.

This module provides the EmailService class for sending emails with:
- Django template rendering for HTML and plain text
- Raw content emails
- Attachment handling

Related files:
    - templates/emails/: Email templates
    - payments/tasks.py: send_donation_confirmation

Configuration:
    Email settings are read from Django settings:
    - EMAIL_BACKEND
    - EMAIL_HOST, EMAIL_PORT
    - DEFAULT_FROM_EMAIL

Usage:
    from toolkit.services.email import EmailService

    # Send email with template
    EmailService.send(
        to="donor@example.com",
        subject="Thank you!",
        template_name="emails/donation_confirmation",
        context={"donor_name": "Asha"}
    )
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template import TemplateDoesNotExist
from django.template.loader import render_to_string
from django.utils.html import strip_tags

logger = logging.getLogger(__name__)


class EmailService:
    """
    Centralized email sending with template support.

    Sending never raises: SMTP and template errors are logged and reported
    as a False return value, so callers decide how loud to be.

    Usage:
        # Send template email
        success = EmailService.send(
            to="donor@example.com",
            subject="Thank you!",
            template_name="emails/donation_confirmation",
            context={"donor_name": "Asha"}
        )

        # Send raw email
        success = EmailService.send_raw(
            to="donor@example.com",
            subject="Quick note",
            body_text="Plain text content",
            body_html="<p>HTML content</p>"
        )
    """

    @staticmethod
    def send(
        to: str | list[str],
        subject: str,
        template_name: str,
        context: dict,
        from_email: str | None = None,
        reply_to: str | None = None,
        attachments: list[tuple] | None = None,
    ) -> bool:
        """
        Send email using a template.

        Args:
            to: Recipient email address(es)
            subject: Email subject line
            template_name: Name of template (without extension)
                           Looks for: {template_name}.html and {template_name}.txt
            context: Template context variables
            from_email: Sender email (defaults to DEFAULT_FROM_EMAIL)
            reply_to: Reply-to address
            attachments: List of (filename, content, mimetype) tuples

        Returns:
            True if email was sent successfully
        """
        try:
            html_content = render_to_string(f"{template_name}.html", context)
        except TemplateDoesNotExist:
            html_content = None

        try:
            text_content = render_to_string(f"{template_name}.txt", context)
        except TemplateDoesNotExist:
            # Fallback: strip HTML tags from HTML content
            text_content = strip_tags(html_content) if html_content else ""

        if html_content is None and not text_content:
            logger.error(
                f"No email template found: {template_name}",
                extra={"template_name": template_name},
            )
            return False

        return EmailService.send_raw(
            to=to,
            subject=subject,
            body_text=text_content,
            body_html=html_content,
            from_email=from_email,
            reply_to=reply_to,
            attachments=attachments,
        )

    @staticmethod
    def send_raw(
        to: str | list[str],
        subject: str,
        body_text: str,
        body_html: str | None = None,
        from_email: str | None = None,
        reply_to: str | None = None,
        attachments: list[tuple] | None = None,
    ) -> bool:
        """
        Send email with raw content (no template).

        Args:
            to: Recipient email address(es)
            subject: Email subject line
            body_text: Plain text email body
            body_html: HTML email body (optional)
            from_email: Sender email (defaults to DEFAULT_FROM_EMAIL)
            reply_to: Reply-to address
            attachments: List of (filename, content, mimetype) tuples

        Returns:
            True if email was sent successfully
        """
        if isinstance(to, str):
            to = [to]

        email = EmailMultiAlternatives(
            subject=subject,
            body=body_text,
            from_email=from_email or settings.DEFAULT_FROM_EMAIL,
            to=to,
            reply_to=[reply_to] if reply_to else None,
        )

        if body_html:
            email.attach_alternative(body_html, "text/html")

        for filename, content, mimetype in attachments or []:
            email.attach(filename, content, mimetype)

        try:
            email.send(fail_silently=False)
        except Exception as e:
            logger.error(
                f"Failed to send email: {type(e).__name__}",
                extra={"recipients": len(to), "subject": subject, "error": str(e)},
            )
            return False

        logger.info(
            "Email sent",
            extra={"recipients": len(to), "subject": subject},
        )
        return True
