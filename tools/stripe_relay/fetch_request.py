"""
Generic outbound HTTP wrapper shared by the upstream clients.

`request()` performs exactly one HTTP call and always hands back an envelope:
`Success` for statuses 200-299, `Failure` for everything else (transport
errors, HTTP status errors and bodies that could not be decoded). Callers
branch on the envelope type, or on `failure.response is None` to tell a
transport failure from an HTTP one, much like axios' `error.response` /
`error.message` convention.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from io import BytesIO
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

import requests
from werkzeug.datastructures import MultiDict
from werkzeug.formparser import FormDataParser
from werkzeug.http import parse_options_header

logger = logging.getLogger("fetch-request")

REQUEST_FAILED = 'Request failed'


class _NoBody:
    def __repr__(self):
        return '<no body>'

    def __bool__(self):
        return False


# Marks envelopes whose body was never read (or could not be decoded)
NO_BODY = _NoBody()


class ErrorKind(str, Enum):
    TRANSPORT = 'transport'
    HTTP_STATUS = 'http_status'
    DECODE = 'decode'


@dataclass(frozen=True)
class RequestConfig:
    """Immutable description of one outbound call, echoed on every envelope."""
    resource: str
    method: str = 'GET'
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[Union[str, bytes]] = None
    timeout: Optional[float] = None  # None leaves it to the transport
    read_body: bool = True
    prefer_binary: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'method', (self.method or 'GET').upper())
        object.__setattr__(self, 'headers', MappingProxyType(dict(self.headers or {})))

    @classmethod
    def from_options(cls, resource, options=None, read_body=True, prefer_binary=False):
        options = options or {}
        return cls(
            resource=resource,
            method=options.get('method') or 'GET',
            headers=options.get('headers') or {},
            body=options.get('body'),
            timeout=options.get('timeout'),
            read_body=read_body,
            prefer_binary=prefer_binary,
        )


@dataclass(frozen=True)
class Blob:
    """Opaque binary payload for bodies that are not text, JSON or form data."""
    content_type: str
    content: bytes = field(repr=False)

    @property
    def size(self):
        return len(self.content)


@dataclass(frozen=True)
class FormData:
    form: MultiDict
    files: MultiDict


class RequestError(Exception):
    """Exception form of a `Failure`, for call sites that propagate by raising."""

    def __init__(self, failure):
        super().__init__(failure.message)
        self.failure = failure

    @property
    def message(self):
        return self.failure.message

    @property
    def kind(self):
        return self.failure.kind

    @property
    def response(self):
        return self.failure.response

    @property
    def config(self):
        return self.failure.config

    @property
    def data(self):
        return self.failure.data


@dataclass(frozen=True)
class Success:
    response: requests.Response
    config: RequestConfig
    data: Any = NO_BODY

    ok = True

    @property
    def has_data(self):
        return self.data is not NO_BODY

    def unwrap(self):
        return self


@dataclass(frozen=True)
class Failure:
    message: str
    config: RequestConfig
    kind: ErrorKind
    response: Optional[requests.Response] = None
    data: Any = NO_BODY

    ok = False

    @property
    def has_data(self):
        return self.data is not NO_BODY

    def summary(self):
        """One-line description for logs; leaves out request headers (they carry secrets)."""
        status = self.response.status_code if self.response is not None else None
        text = f"{self.kind.value}: {self.message} ({self.config.method} {self.config.resource}, status={status})"
        if self.has_data:
            text += f" body={self.data!r}"
        return text

    def unwrap(self):
        raise RequestError(self)


def _decode_text(response):
    return response.text


def _decode_json(response):
    return response.json()


def _decode_form_data(response):
    content = response.content
    mimetype, options = parse_options_header(response.headers.get('Content-Type', ''))
    mimetype = mimetype.lower()
    if mimetype != 'multipart/form-data':
        raise ValueError(f"Unsupported form-data content type: {mimetype}")
    # silent=False: a malformed body (e.g. missing boundary) raises ValueError
    _, form, files = FormDataParser(silent=False).parse(
        BytesIO(content), mimetype, len(content), options
    )
    return FormData(form=form, files=files)


# Evaluated in order; first match wins.
BODY_DECODERS = (
    (lambda mime: 'text' in mime, _decode_text),
    (lambda mime: 'json' in mime, _decode_json),
    (lambda mime: 'form-data' in mime, _decode_form_data),
)


def content_mime(response):
    """Lower-cased Content-Type up to the first comma, '' when absent."""
    return (response.headers.get('Content-Type') or '').split(',')[0].lower()


def read_response_body(response, prefer_binary=False):
    """Read the whole body and decode it according to its Content-Type."""
    mime = content_mime(response)
    for matches, decode in BODY_DECODERS:
        if matches(mime):
            return decode(response)
    if prefer_binary:
        return response.content
    return Blob(content_type=response.headers.get('Content-Type', ''), content=response.content)


def is_success_status(status_code):
    return 200 <= status_code <= 299


def request(resource, options=None, read_body=True, prefer_binary=False, session=None):
    """
    Request `resource` and return a `Success` or `Failure` envelope.

    options: mapping with `method` (default GET), `headers`, `body`, `timeout`.
    read_body: read and decode the whole response body into `data`.
    prefer_binary: when the body is not text, JSON or form data, decode it to
        `bytes` instead of a `Blob`.
    session: object with a requests-compatible `request()`; defaults to `requests`.
    """
    config = RequestConfig.from_options(resource, options, read_body, prefer_binary)
    http = session if session is not None else requests

    logger.debug(f"{config.method} {config.resource}")
    try:
        response = http.request(
            config.method,
            config.resource,
            headers=dict(config.headers),
            data=config.body,
            timeout=config.timeout,
            stream=True,
        )
    except requests.RequestException as e:
        logger.warning(f"{config.method} {config.resource} failed before a response: {e}")
        return Failure(message=str(e), config=config, kind=ErrorKind.TRANSPORT)

    ok = is_success_status(response.status_code)
    logger.debug(f"{config.method} {config.resource} -> {response.status_code}")

    if not read_body:
        response.close()
        if ok:
            return Success(response=response, config=config)
        return Failure(message=REQUEST_FAILED, config=config, kind=ErrorKind.HTTP_STATUS, response=response)

    try:
        data = read_response_body(response, prefer_binary)
    except (ValueError, requests.RequestException) as e:
        logger.warning(f"Could not decode body of {config.method} {config.resource}: {e}")
        return Failure(message=str(e), config=config, kind=ErrorKind.DECODE, response=response)
    finally:
        response.close()

    if ok:
        return Success(response=response, config=config, data=data)
    return Failure(
        message=REQUEST_FAILED, config=config, kind=ErrorKind.HTTP_STATUS, response=response, data=data
    )
