import hashlib
import hmac
import json
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from api.models import MessageKind
from api.webhook import extract_message, signature_valid
from lib.config import Settings

TEXT_EVENT = {
    'object': 'whatsapp_business_account',
    'entry': [{
        'id': 'WABA_ID',
        'changes': [{
            'field': 'messages',
            'value': {
                'messaging_product': 'whatsapp',
                'metadata': {'phone_number_id': '1234567890'},
                'messages': [{
                    'from': '919876543210',
                    'id': 'wamid.TEST1',
                    'timestamp': '1792400000',
                    'type': 'text',
                    'text': {'body': 'Spent 50 on coffee'},
                }],
            },
        }],
    }],
}

STATUS_EVENT = {
    'entry': [{'changes': [{'value': {'statuses': [{'id': 'wamid.TEST1', 'status': 'delivered'}]}}]}],
}


@pytest.fixture
def mock_pipeline():
    pipeline = MagicMock()
    pipeline.run = AsyncMock()
    with patch('api.routes.get_pipeline', return_value=pipeline):
        yield pipeline


def test_handshake_echoes_challenge(test_client):
    response = test_client.get('/webhook?hub.mode=subscribe&hub.verify_token=verify-me&hub.challenge=1158201444')

    assert response.status_code == 200
    assert response.get_data(as_text=True) == '1158201444'


def test_handshake_with_wrong_token_is_forbidden(test_client):
    response = test_client.get('/webhook?hub.mode=subscribe&hub.verify_token=guess&hub.challenge=1158201444')

    assert response.status_code == 403
    assert '1158201444' not in response.get_data(as_text=True)


def test_handshake_with_wrong_mode_is_forbidden(test_client):
    response = test_client.get('/webhook?hub.mode=unsubscribe&hub.verify_token=verify-me&hub.challenge=42')

    assert response.status_code == 403


def test_bare_get_is_a_health_check(test_client):
    response = test_client.get('/webhook')

    assert response.status_code == 200
    assert response.json == {'status': 'healthy'}


def test_health_reports_missing_configuration():
    from api.routes import app
    with patch('api.routes.get_settings', return_value=Settings(whatsapp_verify_token='x')):
        response = app.test_client().get('/')

    assert response.status_code == 500
    assert 'WHATSAPP_TOKEN' in response.json['missing']


def test_message_event_runs_pipeline(test_client, mock_pipeline):
    response = test_client.post('/webhook', json=TEXT_EVENT)

    assert response.status_code == 200
    assert response.get_data(as_text=True) == 'OK'
    message = mock_pipeline.run.await_args.args[0]
    assert message.kind is MessageKind.TEXT
    assert message.text == 'Spent 50 on coffee'
    assert message.message_id == 'wamid.TEST1'


def test_status_callback_is_ignored(test_client, mock_pipeline):
    response = test_client.post('/webhook', json=STATUS_EVENT)

    assert response.status_code == 200
    mock_pipeline.run.assert_not_awaited()


def test_pipeline_crash_still_returns_ok(test_client, mock_pipeline):
    mock_pipeline.run.side_effect = RuntimeError("unexpected")

    response = test_client.post('/webhook', json=TEXT_EVENT)

    assert response.status_code == 200
    assert response.get_data(as_text=True) == 'OK'


def test_garbage_body_still_returns_ok(test_client, mock_pipeline):
    response = test_client.post('/webhook', data='not json', content_type='text/plain')

    assert response.status_code == 200
    mock_pipeline.run.assert_not_awaited()


def test_missing_configuration_drops_event_silently(mock_pipeline):
    from api.routes import app
    with patch('api.routes.get_settings', return_value=Settings()):
        response = app.test_client().post('/webhook', json=TEXT_EVENT)

    assert response.status_code == 200
    mock_pipeline.run.assert_not_awaited()


def test_signature_is_checked_when_app_secret_is_set(settings, mock_pipeline):
    from api.routes import app
    signed_settings = settings.model_copy(update={'whatsapp_app_secret': 'app-secret'})
    body = json.dumps(TEXT_EVENT).encode()
    good = 'sha256=' + hmac.new(b'app-secret', body, hashlib.sha256).hexdigest()

    with patch('api.routes.get_settings', return_value=signed_settings):
        client = app.test_client()
        rejected = client.post('/webhook', data=body, content_type='application/json',
                               headers={'X-Hub-Signature-256': 'sha256=deadbeef'})
        assert rejected.status_code == 200
        mock_pipeline.run.assert_not_awaited()

        accepted = client.post('/webhook', data=body, content_type='application/json',
                               headers={'X-Hub-Signature-256': good})
        assert accepted.status_code == 200
        mock_pipeline.run.assert_awaited_once()


def test_signature_valid_requires_prefix():
    assert signature_valid('secret', b'{}', None) is False
    assert signature_valid('secret', b'{}', 'md5=abc') is False


def test_extract_message_handles_odd_envelopes():
    assert extract_message({}) is None
    assert extract_message({'entry': []}) is None
    assert extract_message({'entry': [{'changes': [{'value': {'messages': []}}]}]}) is None
    assert extract_message(TEXT_EVENT).sender == '919876543210'
