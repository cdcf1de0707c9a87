# Public surface of the transport package.
from ._mod_common import ResponseParseError, build_session, request_with_retries
from .rest import RestClient, RestConfig
from .soql import SOQLBuilder

__all__ = ["RestClient", "RestConfig", "ResponseParseError", "SOQLBuilder", "build_session", "request_with_retries"]
