import os
import logging

from flask import Blueprint, Flask, request, jsonify, current_app

from relay_config import EnvConfig
from upstream_clients import StripeClient, SendinblueClient

# --- Logging Setup ---
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s - %(levelname)s - %(name)s - %(message)s')
logger = logging.getLogger("webhook-service")

DEFAULT_PORT = 8080

bp = Blueprint('stripe_relay', __name__)


# --- Payload Parser ---

def parse_event_payload():
    """JSON body first, falling back to a form-encoded body."""
    payload = request.get_json(silent=True)
    if payload is None and request.form:
        payload = expand_form_keys(request.form)
    return payload if isinstance(payload, dict) else {}


def expand_form_keys(form):
    """Nests bracketed form keys: `data[object][customer]=x` -> {'data': {'object': {'customer': 'x'}}}."""
    payload = {}
    for key, value in form.items():
        parts = [p for p in key.replace(']', '').split('[') if p]
        if not parts:
            continue
        node = payload
        for part in parts[:-1]:
            if not isinstance(node.get(part), dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value
    return payload


def extract_customer_id(payload):
    """Returns `data.object.customer`; a missing `data` counts as empty."""
    event_object = (payload.get('data') or {}).get('object')
    if not isinstance(event_object, dict):
        raise ValueError("Event payload has no data.object")
    customer_id = event_object.get('customer')
    if not customer_id:
        raise ValueError("Event object has no customer")
    return customer_id


# --- Relay Logic ---

def relay_event(payload):
    """Look up the event's customer, then email them the download link."""
    relay = current_app.extensions['stripe_relay']

    customer_id = extract_customer_id(payload)

    logger.info(f"Getting customer {customer_id}...")
    customer = relay['stripe'].get_customer(customer_id)
    logger.debug(f"Customer: {customer}")

    email = customer.get('email') if isinstance(customer, dict) else None
    if not email:
        email = relay['config'].require(
            'FALLBACK_EMAIL', f"Customer {customer_id} has no email and FALLBACK_EMAIL is not set"
        )

    logger.info(f"Sending mail to {email}, name: {customer_id}")
    result = relay['email'].send_email(email, customer_id)
    logger.info(f"Email sent, upstream status {result.response.status_code}")


# --- Routes ---

@bp.route('/', methods=['GET'])
def index():
    return 'Hello World!'


@bp.route('/healthz', methods=['GET'])
def healthz():
    return jsonify({'status': 'ok'}), 200


@bp.route('/stripe-webhook', methods=['POST'])
def stripe_webhook():
    logger.debug(f"req path: {request.path}")
    try:
        payload = parse_event_payload()
        logger.debug(f"req body: {payload}")
        relay_event(payload)
    except Exception as e:
        logger.exception("Error relaying webhook event")
        return str(e), 500, {'Content-Type': 'text/plain; charset=utf-8'}
    return '', 204


def create_app(config=None, stripe_client=None, email_client=None, session=None):
    """Application factory; collaborators may be injected (tests, embedding)."""
    config = config or EnvConfig()
    app = Flask(__name__)
    app.extensions['stripe_relay'] = {
        'config': config,
        'stripe': stripe_client or StripeClient(config, session=session),
        'email': email_client or SendinblueClient(config, session=session),
    }
    app.register_blueprint(bp)
    return app


app = create_app()

if __name__ == '__main__':
    # Not for production, use Gunicorn
    port = EnvConfig().get_int('PORT', DEFAULT_PORT)
    logger.info(f"== Listening on {port} ==")
    app.run(host='0.0.0.0', port=port)
