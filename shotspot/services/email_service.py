"""
Email service using SendGrid for scheduled reports and error alerts.
"""

import base64
import os
import logging
from typing import List, Optional

from dotenv import load_dotenv
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import (
    Attachment,
    Content,
    Disposition,
    Email,
    FileContent,
    FileName,
    FileType,
    Mail,
    To,
)

load_dotenv()

logger = logging.getLogger(__name__)

SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY")
SENDGRID_FROM_EMAIL = os.getenv("SENDGRID_FROM_EMAIL", "noreply@shotspot.app")


def _attachment_type(filename: str) -> str:
    if filename.endswith(".csv"):
        return "text/csv"
    if filename.endswith(".json"):
        return "application/json"
    return "application/octet-stream"


async def send_email(
    recipients: List[str],
    subject: str,
    body: str,
    attachment_name: Optional[str] = None,
    attachment_content: Optional[str] = None,
) -> bool:
    """
    Send a plain-text email, optionally with one text attachment.

    Returns:
        bool: True if SendGrid accepted the message. Missing configuration
        and delivery failures are logged and return False.
    """
    if not recipients:
        logger.warning("No email recipients given. Email skipped.")
        return False
    if not SENDGRID_API_KEY:
        logger.warning("SENDGRID_API_KEY not configured. Email skipped.")
        return False

    try:
        message = Mail(
            from_email=Email(SENDGRID_FROM_EMAIL),
            to_emails=[To(address) for address in recipients],
            subject=subject,
            plain_text_content=Content("text/plain", body),
        )
        if attachment_name and attachment_content is not None:
            encoded = base64.b64encode(attachment_content.encode("utf-8")).decode("ascii")
            message.attachment = Attachment(
                FileContent(encoded),
                FileName(attachment_name),
                FileType(_attachment_type(attachment_name)),
                Disposition("attachment"),
            )

        sg = SendGridAPIClient(SENDGRID_API_KEY)
        response = sg.send(message)

        if 200 <= response.status_code < 300:
            logger.info(f"Email '{subject}' sent to {len(recipients)} recipient(s)")
            return True
        logger.error(f"SendGrid returned status {response.status_code}: {response.body}")
        return False

    except Exception as e:
        logger.error(f"Failed to send email '{subject}': {str(e)}")
        return False


async def send_report_email(recipients: List[str], subject: str, body: str, filename: str, content: str) -> bool:
    return await send_email(recipients, subject, body, attachment_name=filename, attachment_content=content)


async def send_error_notification(recipient: str, subject: str, body: str) -> bool:
    return await send_email([recipient], subject, body)
