"""
Email utility module for Tourbook.
Handles email notifications using Flask-Mailman. Sends are attempted
once; callers decide what a failed send means for their flow.
"""
import re
import uuid
import logging

from flask import render_template, current_app
from flask_mailman import EmailMultiAlternatives
from jinja2 import TemplateNotFound

logger = logging.getLogger(__name__)


def send_email(subject, recipient, template, **kwargs):
    """
    Send an email rendered from ``templates/email/<template>.html``.

    Args:
        subject: Email subject (prefixed with [Tourbook])
        recipient: Email address of the recipient
        template: Template name without extension
        **kwargs: Context variables for the template

    Returns:
        bool: True if the email was handed to the mail backend
    """
    email_id = str(uuid.uuid4())[:8]
    logger.info('[EMAIL:%s] Sending to %s - %s (template: %s)', email_id, recipient, subject, template)

    try:
        html_body = render_template(f'email/{template}.html', **kwargs)
        text_body = (render_template(f'email/{template}.txt', **kwargs)
                     if _template_exists(f'email/{template}.txt')
                     else _html_to_text(html_body))

        msg = EmailMultiAlternatives(
            subject=f'[Tourbook] {subject}',
            body=text_body,
            from_email=current_app.config.get('MAIL_DEFAULT_SENDER', 'noreply@tourbook.app'),
            to=[recipient],
        )
        msg.attach_alternative(html_body, 'text/html')
        msg.send()
    except Exception as e:
        logger.error('[EMAIL:%s] Failed sending to %s: %s', email_id, recipient, e)
        return False

    logger.info('[EMAIL:%s] Sent to %s', email_id, recipient)
    return True


def send_welcome_email(user, url):
    """
    Send welcome email to a new user.

    Args:
        user: User object
        url: Link to the user's account page

    Returns:
        bool: True if email sent successfully
    """
    return send_email(
        subject='Welcome to the Tourbook family!',
        recipient=user.email,
        template='welcome',
        user=user,
        first_name=user.name.split(' ')[0],
        url=url,
    )


def send_password_reset_email(user, reset_url, expiry_minutes=10):
    """
    Send password reset email.

    Args:
        user: User object
        reset_url: URL carrying the raw reset token
        expiry_minutes: How long the token stays valid

    Returns:
        bool: True if email sent successfully
    """
    return send_email(
        subject=f'Your password reset token (valid for {expiry_minutes} minutes)',
        recipient=user.email,
        template='password_reset',
        user=user,
        first_name=user.name.split(' ')[0],
        url=reset_url,
        expiry_minutes=expiry_minutes,
    )


def _template_exists(template_name):
    """Check if a template file exists."""
    try:
        current_app.jinja_env.get_template(template_name)
        return True
    except TemplateNotFound:
        return False


def _html_to_text(html_content):
    """Strip HTML tags for the plain text alternative."""
    text = re.sub(r'<[^>]+>', '', html_content)
    return re.sub(r'\s+', ' ', text).strip()
