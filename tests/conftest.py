"""
Shared fixtures for the client test suite.
==========================================
No test touches the network: every HTTP call goes through
BrokerClient.http.request, which the fixtures below patch with canned
requests.Response objects.
"""

import json
import os
import sys
from datetime import timedelta
from unittest.mock import patch

import pytest
import requests

# ─── Path setup ─────────────────────────────────────────────────────
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tastyclient.services.broker.client import BrokerClient  # noqa: E402
from tastyclient.utils.timestamps import utcnow  # noqa: E402

BASE_URL = 'https://api.cert.tastyworks.com'
ACCOUNT = '5WT00001'
TOKEN = 'session-token-abc'


def build_response(status=200, payload=None, text=None):
    """Build a real requests.Response carrying a JSON payload or raw text."""
    resp = requests.Response()
    resp.status_code = status
    if payload is not None:
        resp._content = json.dumps(payload).encode('utf-8')
        resp.headers['Content-Type'] = 'application/json'
    else:
        resp._content = (text or '').encode('utf-8')
    resp.encoding = 'utf-8'
    resp.url = BASE_URL
    return resp


def order_payload(order_id=101, status='Received', price='150.00', legs=None, **extra):
    """Server-shaped order dict (kebab-case)."""
    body = {
        'id': order_id,
        'account-number': ACCOUNT,
        'status': status,
        'cancellable': True,
        'editable': True,
        'edited': False,
        'order-type': 'Limit',
        'time-in-force': 'Day',
        'price': price,
        'price-effect': 'Debit',
        'received-at': '2026-10-16T14:30:00.000+00:00',
        'legs': legs if legs is not None else [
            {'symbol': 'AAPL', 'instrument-type': 'Equity', 'action': 'Buy to Open',
             'quantity': 1, 'remaining-quantity': 1, 'fills': []},
        ],
    }
    body.update(extra)
    return body


@pytest.fixture()
def make_response():
    return build_response


@pytest.fixture()
def make_order():
    return order_payload


@pytest.fixture()
def client():
    """Unauthenticated client."""
    c = BrokerClient(base_url=BASE_URL, request_timeout=5)
    c.orders.reconcile_base_delay = 0
    yield c
    c.close()


@pytest.fixture()
def auth_client(client):
    """Client with a live session token that expires in an hour."""
    client.session.session_token = TOKEN
    client.session.session_id = 'sess-1'
    client.session.expires_at = utcnow() + timedelta(hours=1)
    return client


@pytest.fixture()
def http(client):
    """Patch the client's transport; set .side_effect / .return_value per test."""
    with patch.object(client.http, 'request') as mock_request:
        yield mock_request
