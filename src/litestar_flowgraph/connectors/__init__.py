"""External process connectors.

Workflow steps call out to request/response services (decision flow, OCR,
privilege checks, notifications, credit bureau, KBIJ, XML templates). This
package provides the httpx based implementation of
:class:`~litestar_flowgraph.core.protocols.ProcessConnector`.
"""

from __future__ import annotations

from litestar_flowgraph.connectors.config import DEFAULT_ENDPOINTS, ConnectorConfig
from litestar_flowgraph.connectors.http import HttpProcessConnector
from litestar_flowgraph.connectors.responses import extract_stages, extract_temp_results, is_error_response

__all__ = [
    "DEFAULT_ENDPOINTS",
    "ConnectorConfig",
    "HttpProcessConnector",
    "extract_stages",
    "extract_temp_results",
    "is_error_response",
]
