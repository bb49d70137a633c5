from flask import Flask, request, Response, jsonify
import logging
import sys

from lib.config import get_settings
from .pipeline import MessagePipeline, create_pipeline
from .webhook import extract_message, is_handshake, signature_valid, verify_handshake

# Configure detailed logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stdout,
    force=True  # Ensure our config takes precedence
)

logger = logging.getLogger(__name__)

app = Flask(__name__)

_pipeline = None


def get_pipeline() -> MessagePipeline:
    """Build the pipeline on first use so a bad configuration cannot break imports"""
    global _pipeline
    if _pipeline is None:
        logger.info("Initializing message pipeline...")
        _pipeline = create_pipeline(get_settings())
        logger.info("Message pipeline initialized successfully")
    return _pipeline


def _ok() -> Response:
    return Response('OK', status=200, mimetype='text/plain')


@app.route('/', methods=['GET'])
def root():
    """Basic health check"""
    missing = get_settings().missing()
    if missing:
        return jsonify({'status': 'error', 'missing': missing}), 500
    return jsonify({'status': 'healthy'})


@app.route('/webhook', methods=['GET'])
def verify_webhook():
    """Meta's subscription handshake; a bare GET is a health check"""
    if not is_handshake(request.args):
        return root()

    settings = get_settings()
    if not settings.whatsapp_verify_token:
        logger.error("WHATSAPP_VERIFY_TOKEN is not configured")
        return Response('Webhook not configured', status=500, mimetype='text/plain')

    body, status = verify_handshake(request.args, settings.whatsapp_verify_token)
    return Response(body, status=status, mimetype='text/plain')


@app.route('/webhook', methods=['POST'])
async def receive_event():
    """Incoming messages. Always 200 so Meta does not redeliver."""
    try:
        settings = get_settings()
        missing = settings.missing()
        if missing:
            logger.error(f"Dropping event, missing configuration: {', '.join(missing)}")
            return _ok()

        if settings.whatsapp_app_secret and not signature_valid(
            settings.whatsapp_app_secret,
            request.get_data(),
            request.headers.get('X-Hub-Signature-256')
        ):
            logger.warning("Dropping event with an invalid signature")
            return _ok()

        message = extract_message(request.get_json(silent=True) or {})
        if message is None:
            logger.info("Event without messages, ignoring")
            return _ok()

        logger.info(f"{message.kind.value} message {message.message_id} from {message.sender_phone}")
        await get_pipeline().run(message)

    except Exception as e:
        logger.error(f"Webhook error: {str(e)}", exc_info=True)

    return _ok()
