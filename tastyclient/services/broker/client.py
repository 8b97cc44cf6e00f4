"""
Broker Client — Authenticated Request Pipeline
===============================================
Single entry point for every HTTP call the library makes.

Supports:
  - Sandbox    (https://api.cert.tastyworks.com)
  - Production (https://api.tastyworks.com)

Key behaviors:
  - Fail-closed token check before any authenticated request
  - Query-string suffixes passed through verbatim (no re-encoding)
  - Uniform error mapping: every non-2xx becomes a BrokerAPIException
  - Envelope-tolerant decoding: {"data": {...}} or the bare object
  - No automatic retries; transport errors surface to the caller as-is
"""

import json
import logging

import requests
from pydantic import ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from tastyclient.config import Config
from tastyclient.services.broker.exceptions import (
    BrokerCancelledException,
    BrokerDecodeException,
    BrokerTimeoutException,
    BrokerUnavailableException,
    parse_error_response,
)
from tastyclient.services.broker.orders import OrderService
from tastyclient.services.broker.session import Session, SessionManager
from tastyclient.utils import cancellation

logger = logging.getLogger(__name__)

BODY_METHODS = ('POST', 'PUT', 'PATCH', 'DELETE')
REDACTED_FIELDS = ('password', 'remember-me-token', 'session-token', 'remember-token')


def _redact(body):
    if not isinstance(body, dict):
        return body
    return {k: ('***' if k in REDACTED_FIELDS else v) for k, v in body.items()}


class BrokerClient:
    """Order-management API client.

    One instance owns one Session. Not internally synchronized.
    Factory creates instances via ClientFactory.get_client().
    """

    def __init__(self, base_url: str, request_timeout: float = None,
                 expiry_margin: float = None, http: requests.Session = None):
        """
        Args:
            base_url: API root (sandbox or production)
            request_timeout: per-request timeout in seconds
            expiry_margin: seconds before expiry at which the token is
                treated as expired
            http: optional pre-built requests.Session (pooling, proxies)
        """
        self.base_url = base_url.rstrip('/')
        self.request_timeout = request_timeout or Config.REQUEST_TIMEOUT
        self.session = Session(base_url=self.base_url)
        if expiry_margin is not None:
            self.session.expiry_margin = expiry_margin

        # Persistent pooled transport, retries disabled
        self.http = http or self._build_http_session()

        self.sessions = SessionManager(self)
        self.orders = OrderService(self)

        logger.info(f"BrokerClient initialized: base_url={self.base_url}")

    def _build_http_session(self) -> requests.Session:
        """Build a pooled requests session. No retry strategy: callers decide."""
        s = requests.Session()
        s.headers.update({"Accept": "application/json"})
        adapter = HTTPAdapter(
            pool_maxsize=Config.POOL_MAXSIZE,
            max_retries=Retry(total=0, raise_on_status=False),
        )
        s.mount("https://", adapter)
        s.mount("http://", adapter)
        return s

    # ─── URL building ───────────────────────────────────────────────

    def _build_url(self, path: str) -> str:
        """Join base URL and path; a '?query' suffix is appended untouched."""
        path, sep, query = path.partition('?')
        url = f"{self.base_url}/{path.lstrip('/')}"
        return f"{url}?{query}" if sep and query else url

    # ─── Internal request method ────────────────────────────────────

    def _request(self, method: str, path: str, body=None, auth: bool = True,
                 model=None, cancel=None, check_expiry: bool = True):
        """Execute an API request.

        Args:
            method: HTTP method ('GET', 'POST', 'PUT', 'DELETE', ...)
            path: API path, optionally with a pre-encoded query string
            body: JSON-serializable body (dict) or None
            auth: attach the session token (and verify it first)
            model: pydantic model class to decode into; None means the
                call is side-effect only and the body is not parsed
            cancel: optional CancellationToken
            check_expiry: enforce the token expiry margin when auth is set

        Returns:
            Instance of `model`, or None when no model is given

        Raises:
            BrokerAuthException / BrokerSessionExpiredException (before sending),
            BrokerCancelledException, BrokerTimeoutException,
            BrokerUnavailableException, BrokerAPIException, BrokerDecodeException
        """
        method = method.upper()
        if auth and (check_expiry or not self.session.session_token):
            self.session.ensure_valid_token()

        cancellation.checkpoint(cancel, f"{method} {path}")

        url = self._build_url(path)
        headers = {"Accept": "application/json"}
        data = None
        if body is not None:
            data = json.dumps(body)
            if method in BODY_METHODS:
                headers["Content-Type"] = "application/json"
        if auth and self.session.session_token:
            headers["Authorization"] = self.session.session_token

        timeout = cancel.request_timeout(self.request_timeout) if cancel else self.request_timeout
        logger.debug(f"{method} {url} body={_redact(body)}")

        try:
            resp = self.http.request(method, url, data=data, headers=headers, timeout=timeout)
        except requests.exceptions.Timeout:
            if cancel is not None and cancel.cancelled:
                raise BrokerCancelledException(f"{method} {path} deadline exceeded")
            raise BrokerTimeoutException(f"Request timed out: {method} {path}", status_code=408)
        except requests.exceptions.ConnectionError as e:
            raise BrokerUnavailableException(f"Connection failed: {method} {path}: {e}")
        except requests.exceptions.RequestException as e:
            # Broken chunked body, bad content encoding, redirect loops, ...
            raise BrokerUnavailableException(f"Request failed: {method} {path}: {e}")

        logger.debug(f"{method} {path} → {resp.status_code}")

        if resp.status_code >= 400:
            error = parse_error_response(resp.status_code, resp.text)
            logger.debug(f"{method} {path} failed: {error}")
            raise error

        if model is None:
            return None

        return self._decode(resp, model, f"{method} {path}")

    def _decode(self, resp: requests.Response, model, context: str):
        """Decode {"data": ...} first, then the bare body."""
        name = getattr(model, '__name__', str(model))
        raw = resp.text
        try:
            payload = resp.json()
        except ValueError as e:
            raise BrokerDecodeException(
                f"Failed to decode {name} from {context}: body is not JSON",
                target=name,
                raw_response=raw[:500],
            ) from e

        envelope_error = None
        if isinstance(payload, dict) and 'data' in payload:
            try:
                return model.model_validate(payload['data'])
            except ValidationError as e:
                envelope_error = e

        try:
            return model.model_validate(payload)
        except ValidationError as e:
            bare_error = e

        # An envelope was present, so its error is the one that explains the failure
        cause = envelope_error or bare_error
        raise BrokerDecodeException(
            f"Failed to decode {name} from {context}: {cause}",
            target=name,
            raw_response=raw[:500],
        )

    # ─── Utility ────────────────────────────────────────────────────

    def close(self):
        self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def __repr__(self):
        return f"BrokerClient(base_url={self.base_url}, authenticated={self.session.is_authenticated})"
