from .base_handler import BaseHandler
from django.conf import settings
from twilio.rest import Client
from twilio.base.exceptions import TwilioException
import logging

logger = logging.getLogger('notifications.channels.sms')

SMS_MAX_LENGTH = 1600


class SMSHandler(BaseHandler):
    """
    SMS notification handler using Twilio API
    """
    channel = 'sms'

    def __init__(self, credentials: dict = None):
        super().__init__(credentials)
        self._client = None

    def _get_credentials(self) -> dict:
        return {
            'account_sid': self.credentials.get('account_sid') or settings.TWILIO_ACCOUNT_SID,
            'auth_token': self.credentials.get('auth_token') or settings.TWILIO_AUTH_TOKEN,
            'from_number': self.credentials.get('from_number') or settings.TWILIO_FROM_NUMBER,
        }

    def _get_twilio_client(self):
        """Get or create Twilio client instance"""
        if self._client is None:
            creds = self._get_credentials()
            self._client = Client(creds['account_sid'], creds['auth_token'])
        return self._client

    @staticmethod
    def _render_body(content: dict) -> str:
        body = content.get('body', '')
        if content.get('action_url') and not content['action_url'].startswith('/'):
            body = f"{body}\n{content['action_url']}"
        return body[:SMS_MAX_LENGTH]

    async def send(self, recipient, content: dict, context: dict) -> dict:
        if not recipient.phone:
            return self.failure(recipient, 'Recipient has no phone number')

        try:
            message = self._get_twilio_client().messages.create(
                body=self._render_body(content),
                from_=self._get_credentials()['from_number'],
                to=recipient.phone
            )
            logger.info(f"SMS sent successfully: {message.sid}")
            return {
                'success': True,
                'response': {
                    'sid': message.sid,
                    'status': message.status,
                    'recipient': recipient.phone
                }
            }

        except TwilioException as e:
            error_code = getattr(e, 'code', None)
            if error_code == 21211:
                return self.failure(recipient, 'invalid_number')
            elif error_code == 20003:
                return self.failure(recipient, 'auth_error')
            return self.failure(recipient, f'provider_error: {str(e)}')

        except Exception as e:
            return self.failure(recipient, str(e))
