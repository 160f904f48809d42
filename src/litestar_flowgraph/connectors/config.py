"""Configuration for the HTTP process connectors."""

from __future__ import annotations

from dataclasses import dataclass, field

from litestar_flowgraph.exceptions import ConnectorError

__all__ = ["DEFAULT_ENDPOINTS", "ConnectorConfig"]

DEFAULT_ENDPOINTS: dict[str, str] = {
    "decision_flow": "api/Process/Start",
    "champion_challenger": "api/Process/Start",
    "ocr": "VisionReader",
    "applicant_data": "Kinicintaku/ttable",
    "enquiry_privilege": "enquiry",
    "notify": "DataRequired/Notification/GenerateWF",
    "credit_bureau": "EnqueryExec/Workflow",
    "integration": "idclibrary/integration/Process",
    "dynamic_form": "v1.0/FormAdvance/DynamicAdvance",
    "xml_data": "Executes/XML",
    "kbij": "productpurchase/exec/kbij",
    "check_previous_action": "Workflow/CheckPreviAction",
}
"""Default path of each named connector, relative to its base URL."""


@dataclass
class ConnectorConfig:
    """Configuration for :class:`HttpProcessConnector`.

    Attributes:
        base_urls: Base URL of each named connector, e.g.
            ``{"decision_flow": "https://decision.internal"}``.
        endpoints: Path of each named connector relative to its base URL.
            Defaults to :data:`DEFAULT_ENDPOINTS`.
        timeout: Request timeout in seconds.
        ensure_success: Raise :class:`ConnectorError` on non 2xx responses.
            When False the response body is returned whatever the status.
        headers: Headers sent with every request.
    """

    base_urls: dict[str, str] = field(default_factory=dict)
    endpoints: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ENDPOINTS))
    timeout: float = 30.0
    ensure_success: bool = False
    headers: dict[str, str] = field(default_factory=dict)

    def url_for(self, name: str, suffix: str | None = None) -> str:
        """Build the URL of a named connector.

        Args:
            name: Connector name.
            suffix: Optional extra path segment appended to the endpoint.

        Returns:
            The absolute URL.

        Raises:
            ConnectorError: If no base URL is configured for ``name``.
        """
        base_url = self.base_urls.get(name)
        if not base_url:
            raise ConnectorError(name, "no base URL configured")
        parts = [base_url.rstrip("/")]
        path = self.endpoints.get(name, "").strip("/")
        if path:
            parts.append(path)
        if suffix:
            parts.append(suffix.strip("/"))
        return "/".join(parts)
