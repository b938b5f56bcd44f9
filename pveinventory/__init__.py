from .client import (
    DEFAULT_TIMEOUT,
    MalformedRecordError,
    ProxmoxAPIError,
    ProxmoxAuthError,
    ProxmoxClient,
    ProxmoxError,
    UnsupportedOperationError,
    VmRef,
    establish_session,
    normalize_principal,
)

__version__ = '0.1.0'
