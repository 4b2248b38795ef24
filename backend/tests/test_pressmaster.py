import json

import pytest
import requests

from app.config import Settings
from app.errors import QuoteError
from app.pressmaster import (
    LiveQuoteProvider,
    PressmasterClient,
    StubQuoteProvider,
    build_quote_provider,
    parse_upstream_quote,
)

PAYLOAD = {'project': 'Print Power Purpose', 'specs': 'Check-drop campaign assets', 'quantity': 1, 'donationId': '42'}


def make_response(status_code=200, body=None, text=None):
    resp = requests.Response()
    resp.status_code = status_code
    resp._content = (text if text is not None else json.dumps(body)).encode()
    return resp


class FakeSession:
    def __init__(self, response=None, error=None):
        self.headers = {}
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append({'url': url, 'json': json, 'timeout': timeout, 'headers': dict(self.headers)})
        if self.error is not None:
            raise self.error
        return self.response


def test_stub_quote_shape(monkeypatch):
    def no_network(*args, **kwargs):
        raise AssertionError('stub mode must not call the network')
    monkeypatch.setattr(requests.Session, 'post', no_network)

    quote = StubQuoteProvider().get_quote(PAYLOAD)
    assert quote.mock is True
    assert quote.quote.amount == 346.49
    assert quote.quote.currency == 'USD'
    assert quote.turnaround == '3-5 business days'
    assert quote.quote_id.startswith('MOCK-')
    assert quote.items == [{'project': 'Print Power Purpose', 'specs': 'Check-drop campaign assets', 'quantity': 1}]
    assert quote.fallback_reason is None


def test_provider_chosen_from_settings():
    assert build_quote_provider(Settings()).mode == 'stub'
    live = build_quote_provider(Settings(pressmaster_api_key='secret', pressmaster_timeout=4))
    assert live.mode == 'live'
    assert live.timeout == 4
    assert live.session.headers['Authorization'] == 'Bearer secret'


def test_live_quote_success():
    session = FakeSession(make_response(200, {
        'quote_id': 981,
        'status': 'pending',
        'pricing': {'subtotal': 120.0, 'total': 135.5, 'currency': 'USD'},
        'estimated_delivery': {'min_days': 2, 'max_days': 4},
        'notes': 'Proof within 24h',
    }))
    provider = LiveQuoteProvider('secret', 'https://pressmaster.test/quotes', timeout=10, session=session)

    quote = provider.get_quote(PAYLOAD)
    assert quote.mock is False
    assert quote.quote.amount == 135.5
    assert quote.quote_id == '981'
    assert quote.turnaround == '2-4 business days'
    assert session.calls[0]['url'] == 'https://pressmaster.test/quotes'
    assert session.calls[0]['json'] == PAYLOAD
    assert session.calls[0]['timeout'] == 10
    assert session.calls[0]['headers']['Authorization'] == 'Bearer secret'


@pytest.mark.parametrize('session, reason', [
    (FakeSession(make_response(502, text='bad gateway')), 'error 502'),
    (FakeSession(error=requests.exceptions.ReadTimeout('slow')), 'timed out'),
    (FakeSession(error=requests.exceptions.ConnectionError('refused')), 'unreachable'),
    (FakeSession(make_response(200, text='<html>')), 'invalid JSON'),
    (FakeSession(make_response(200, {'status': 'pending'})), 'no amount'),
])
def test_live_failures_fall_back_to_stub(session, reason):
    quote = LiveQuoteProvider('secret', session=session).get_quote(PAYLOAD)
    assert quote.mock is True
    assert quote.quote.amount == 346.49
    assert reason in quote.fallback_reason


def test_parse_nested_upstream_body():
    quote = parse_upstream_quote({'data': {'id': 'PM-1', 'quote': {'amount': '88.10', 'currency': 'EUR'},
                                           'turnaround': '5 days'}})
    assert quote.quote_id == 'PM-1'
    assert quote.quote.amount == 88.1
    assert quote.quote.currency == 'EUR'
    assert quote.turnaround == '5 days'


def test_client_returns_quote():
    body = {'success': True, 'mock': True, 'quote': {'amount': 346.49, 'currency': 'USD'},
            'turnaround': '3-5 business days', 'notes': 'mock', 'quote_id': 'MOCK-1'}
    session = FakeSession(make_response(200, body))
    quote = PressmasterClient('http://shop.test/', 'tok', session=session).request_quote(PAYLOAD)
    assert quote.quote_id == 'MOCK-1'
    assert session.calls[0]['url'] == 'http://shop.test/api/v1/pressmaster/quote'
    assert session.calls[0]['headers']['Authorization'] == 'Bearer tok'


def test_client_raises_on_error_body():
    session = FakeSession(make_response(401, {'success': False, 'error': 'Unauthorized'}))
    with pytest.raises(QuoteError) as exc:
        PressmasterClient('http://shop.test', 'tok', session=session).request_quote(PAYLOAD)
    assert exc.value.status_code == 401
    assert 'Unauthorized' in str(exc.value)


def test_client_raises_on_network_failure():
    session = FakeSession(error=requests.exceptions.ConnectionError('refused'))
    with pytest.raises(QuoteError):
        PressmasterClient('http://shop.test', 'tok', session=session).request_quote(PAYLOAD)
