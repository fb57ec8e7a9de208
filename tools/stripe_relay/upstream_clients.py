import json
import logging
from urllib.parse import quote

from fetch_request import Failure, RequestError, request

logger = logging.getLogger("upstream-clients")

STRIPE_API_BASE = 'https://api.stripe.com/v1/'
SENDINBLUE_API_BASE = 'https://api.sendinblue.com/v3/'

DEFAULT_SENDER_ADDRESS = 'no-reply@example.org'
DEFAULT_SENDER_NAME = 'Little Robot'
DEFAULT_RECIPIENT_NAME = 'Your Name'
DEFAULT_DOWNLOAD_URL = 'https://matheusb-comp.github.io/stripe-test/mini-tigre.zip'
EMAIL_SUBJECT = 'Hi, is everything ok?'


class StripeClient:
    """Looks up customers through the Stripe REST API."""

    def __init__(self, config, base_url=None, session=None):
        self.config = config
        self.base_url = base_url
        self.session = session

    def api_base(self):
        return self.base_url or self.config.get('STRIPE_API_BASE', STRIPE_API_BASE)

    def get_customer(self, customer_id):
        """Return the decoded customer object; raises RequestError on failure."""
        token = self.config.require('STRIPE_API_TOKEN', 'No API token to communicate with Stripe!')

        url = self.api_base() + 'customers/' + quote(str(customer_id), safe='')
        options = {
            'headers': {'Authorization': 'Bearer ' + token},
        }
        result = request(url, options, session=self.session)
        if isinstance(result, Failure):
            logger.error(f"ERROR GETTING CUSTOMER: {result.summary()}")
            raise RequestError(result)
        return result.data


class SendinblueClient:
    """Sends the transactional download email through Sendinblue."""

    def __init__(self, config, base_url=None, session=None):
        self.config = config
        self.base_url = base_url
        self.session = session

    def api_base(self):
        return self.base_url or self.config.get('SENDINBLUE_API_BASE', SENDINBLUE_API_BASE)

    def build_email(self, email, name=None, attachment_label=None):
        download_url = self.config.get('DOWNLOAD_URL', DEFAULT_DOWNLOAD_URL)
        label = attachment_label or 'here'
        return {
            'sender': {
                'email': self.config.get('EMAIL_SENDER_ADDRESS', DEFAULT_SENDER_ADDRESS),
                'name': self.config.get('EMAIL_SENDER_NAME', DEFAULT_SENDER_NAME),
            },
            'to': [
                {'email': email, 'name': name or DEFAULT_RECIPIENT_NAME},
            ],
            'subject': EMAIL_SUBJECT,
            'htmlContent': (
                "<html><head></head><body>"
                f"<p>Download your file <a href='{download_url}'>{label}</a>.</p>"
                "</body></html>"
            ),
        }

    def send_email(self, email, name=None, attachment_label=None):
        token = self.config.require('SENDINBLUE_API_TOKEN', 'No API token to send email!')

        url = self.api_base() + 'smtp/email'
        options = {
            'method': 'POST',
            'headers': {
                'Accept': 'application/json',
                'Content-Type': 'application/json',
                'api-key': token,
            },
            'body': json.dumps(self.build_email(email, name, attachment_label)),
        }
        result = request(url, options, session=self.session)
        if isinstance(result, Failure):
            logger.error(f"ERROR SENDING EMAIL: {result.summary()}")
            raise RequestError(result)
        return result
