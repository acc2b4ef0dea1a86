"""
Tests for BotpressClient with requests patched out
"""

import pytest
import requests
from unittest.mock import Mock
from services.botpress_client import BotpressClient, BotpressAPIError


def fake_response(status_code=200, payload=None, text=''):
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.content = b'{}' if payload is not None else b''
    response.json.return_value = payload
    response.text = text
    return response


@pytest.fixture
def client():
    return BotpressClient(
        token='tok',
        bot_id='bot-1',
        integration_id='int-1',
        base_url='https://api.botpress.test/',
        webhook_url='https://hooks.botpress.test/abc',
        timeout=5
    )


class TestBotpressClient:

    def test_unconfigured_client_raises(self, mocker):
        request = mocker.patch('services.botpress_client.requests.request')
        client = BotpressClient(token=None, bot_id='bot-1')

        with pytest.raises(BotpressAPIError):
            client.get_or_create_user()
        request.assert_not_called()

    def test_get_or_create_user(self, client, mocker):
        request = mocker.patch('services.botpress_client.requests.request',
                               return_value=fake_response(payload={'user': {'id': 'u-1'}}))

        assert client.get_or_create_user(tags={'contactId': '55'}, timeout=2) == 'u-1'

        kwargs = request.call_args.kwargs
        assert kwargs['method'] == 'POST'
        assert kwargs['url'] == 'https://api.botpress.test/v1/chat/users/get-or-create'
        assert kwargs['json'] == {'tags': {'contactId': '55'}}
        assert kwargs['timeout'] == 2
        assert kwargs['headers']['Authorization'] == 'Bearer tok'
        assert kwargs['headers']['x-bot-id'] == 'bot-1'
        assert kwargs['headers']['x-integration-id'] == 'int-1'

    def test_default_timeout(self, client, mocker):
        request = mocker.patch('services.botpress_client.requests.request',
                               return_value=fake_response(payload={'conversation': {'id': 'c-1'}}))

        assert client.create_conversation('webhook', {'id': '7'}) == 'c-1'
        assert request.call_args.kwargs['timeout'] == 5

    def test_missing_id_in_response(self, client, mocker):
        mocker.patch('services.botpress_client.requests.request',
                     return_value=fake_response(payload={'conversation': {}}))

        with pytest.raises(BotpressAPIError):
            client.create_conversation('webhook', {'id': '7'})

    def test_http_error_status(self, client, mocker):
        mocker.patch('services.botpress_client.requests.request',
                     return_value=fake_response(status_code=503, text='unavailable'))

        with pytest.raises(BotpressAPIError) as exc_info:
            client.add_participant('c-1', 'u-1')
        assert exc_info.value.status_code == 503

    def test_timeout_is_wrapped(self, client, mocker):
        mocker.patch('services.botpress_client.requests.request',
                     side_effect=requests.exceptions.Timeout('slow'))

        with pytest.raises(BotpressAPIError, match='timed out'):
            client.set_state('conversation', 'c-1', 'contactContext', {'a': 1})

    def test_create_message_returns_id(self, client, mocker):
        request = mocker.patch('services.botpress_client.requests.request',
                               return_value=fake_response(payload={'message': {'id': 'm-1'}}))

        assert client.create_message('c-1', 'u-1', 'Hello') == 'm-1'
        body = request.call_args.kwargs['json']
        assert body['payload'] == {'text': 'Hello'}
        assert body['type'] == 'text'

    def test_relay_posts_to_webhook(self, client, mocker):
        post = mocker.patch('services.botpress_client.requests.post', return_value=fake_response())

        client.relay_inbound_message('u-1', 'c-1', 'hi', message_id='SM1')

        post.assert_called_once_with(
            'https://hooks.botpress.test/abc',
            json={'userId': 'u-1', 'conversationId': 'c-1', 'text': 'hi', 'messageId': 'SM1'},
            timeout=5
        )

    def test_relay_without_webhook_url(self, mocker):
        post = mocker.patch('services.botpress_client.requests.post')
        client = BotpressClient(token='tok', bot_id='bot-1')

        with pytest.raises(BotpressAPIError):
            client.relay_inbound_message('u-1', 'c-1', 'hi')
        post.assert_not_called()

    def test_relay_error_status(self, client, mocker):
        mocker.patch('services.botpress_client.requests.post', return_value=fake_response(status_code=500))

        with pytest.raises(BotpressAPIError):
            client.relay_inbound_message('u-1', 'c-1', 'hi')
