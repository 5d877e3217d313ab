"""Azure PIM infrastructure -- settings, logging, tokens, caching and HTTP."""

from azpim.infra.backend import Backend, Operation, RequestBuilder, check_error_response
from azpim.infra.cache import ExpiringMap
from azpim.infra.graph import ObjectResolver
from azpim.infra.logging import LoggingSettings, configure_logging, get_logger
from azpim.infra.settings import PimSettings, get_pim_settings
from azpim.infra.tokens import AzureCliTokenProvider, TokenProvider, TokenScope, extract_oid

__all__ = [
    "AzureCliTokenProvider",
    "Backend",
    "ExpiringMap",
    "LoggingSettings",
    "ObjectResolver",
    "Operation",
    "PimSettings",
    "RequestBuilder",
    "TokenProvider",
    "TokenScope",
    "check_error_response",
    "configure_logging",
    "extract_oid",
    "get_logger",
    "get_pim_settings",
]
