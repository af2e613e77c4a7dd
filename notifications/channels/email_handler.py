from .base_handler import BaseHandler
from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.utils.html import escape
import logging

logger = logging.getLogger('notifications.channels.email')

LEVEL_COLORS = {
    'info': '#007bff',
    'success': '#28a745',
    'warning': '#ffc107',
    'error': '#dc3545',
}


class EmailHandler(BaseHandler):
    channel = 'email'

    def _create_html_email(self, content: dict) -> str:
        """Wrap the rendered title and body in the platform's plain email layout"""
        color = LEVEL_COLORS.get(content.get('level'), LEVEL_COLORS['info'])
        body_html = '<br>'.join(escape(line) for line in content.get('body', '').splitlines())

        action_html = ""
        if content.get('action_url'):
            url = content['action_url']
            if url.startswith('/'):
                url = f"{getattr(settings, 'FRONTEND_URL', '').rstrip('/')}{url}"
            action_html = (
                f'<p><a href="{escape(url)}" style="background-color: {color}; color: #ffffff; '
                f'padding: 10px 18px; border-radius: 4px; text-decoration: none;">'
                f'{escape(content.get("action_text") or "Open")}</a></p>'
            )

        summary_html = ""
        if content.get('summary'):
            summary_html = f'<p style="color: #6c757d; font-size: 13px;">{escape(content["summary"])}</p>'

        return f"""
        <!DOCTYPE html>
        <html lang="en">
        <head><meta charset="UTF-8"><title>{escape(content.get('title', ''))}</title></head>
        <body style="font-family: Arial, sans-serif; background-color: #f8f9fa; padding: 24px;">
            <div style="max-width: 600px; margin: 0 auto; background: #ffffff; border-top: 4px solid {color}; padding: 24px;">
                <h2 style="margin-top: 0;">{escape(content.get('title', ''))}</h2>
                <p>{body_html}</p>
                {summary_html}
                {action_html}
            </div>
        </body>
        </html>
        """

    async def send(self, recipient, content: dict, context: dict) -> dict:
        if not recipient.email:
            return self.failure(recipient, 'Recipient has no email address')

        try:
            from_email = self.credentials.get('from_email') or settings.DEFAULT_FROM_EMAIL
            email = EmailMultiAlternatives(
                subject=content.get('title', ''),
                body=content.get('body', ''),
                from_email=from_email,
                to=[recipient.email],
                headers={'X-Notification-Id': str(context.get('notification_id', ''))},
            )
            email.attach_alternative(self._create_html_email(content), "text/html")
            sent = email.send(fail_silently=False)
            if sent:
                logger.info(f"Email sent to {recipient.email} for notification {context.get('notification_id')}")
                return {'success': True, 'response': f'Sent to {sent} recipients'}
            return self.failure(recipient, 'Send failed')
        except Exception as e:
            return self.failure(recipient, str(e))
