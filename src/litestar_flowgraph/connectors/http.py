"""HTTP implementation of the external process connectors.

Every connector is a JSON ``POST`` to a configured service. The named methods
build the request body each service expects; :meth:`HttpProcessConnector.call`
sends an already built body and is what workflow steps use generically.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from litestar_flowgraph.connectors.config import ConnectorConfig
from litestar_flowgraph.core.merge import merge_documents
from litestar_flowgraph.core.models import TTable
from litestar_flowgraph.exceptions import ConnectorError

if TYPE_CHECKING:
    from types import TracebackType

    from litestar_flowgraph.core.types import Document

__all__ = ["HttpProcessConnector"]

logger = logging.getLogger(__name__)

_OCR_DATA_TYPES = {"verify_tax_personal": "personal", "verify_tax_company": "company"}


class HttpProcessConnector:
    """Client for the external services workflow steps call out to.

    Attributes:
        config: Base URLs, endpoints and request options.
        client: The underlying ``httpx.AsyncClient``.

    Example:
        >>> config = ConnectorConfig(base_urls={"decision_flow": "https://decision.internal"})
        >>> async with HttpProcessConnector(config) as connector:
        ...     output = await connector.decision_flow("DF-01", ttable)
    """

    def __init__(self, config: ConnectorConfig | None = None, client: httpx.AsyncClient | None = None) -> None:
        """Initialize the connector.

        Args:
            config: Connector configuration.
            client: Optional preconfigured client; closing it stays the
                caller's responsibility.
        """
        self.config = config or ConnectorConfig()
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=self.config.timeout, headers=self.config.headers)

    async def close(self) -> None:
        """Close the HTTP client if this connector created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> HttpProcessConnector:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def call(self, name: str, payload: Document) -> Document:
        """Send ``payload`` to the connector registered as ``name``.

        Args:
            name: Connector name.
            payload: JSON request body.

        Returns:
            The JSON response body.

        Raises:
            ConnectorError: If the service cannot be reached, answers with a
                non JSON body, or (with ``ensure_success``) a non 2xx status.
        """
        return await self._post(name, payload)

    async def decision_flow(self, code: str, ttable: TTable | Document | None) -> Document:
        """Run a decision flow over an application's working record.

        Args:
            code: Decision flow code.
            ttable: The working record the rules evaluate.

        Returns:
            The decision-flow response, carrying ``data.stages`` and
            ``data.temp_results``.
        """
        return await self._post("decision_flow", {"code": code, "data": [_as_document(ttable)]})

    async def champion_challenger(self, code: str, ttable: TTable | Document | None) -> Document:
        """Run a champion/challenger decision flow; same body as :meth:`decision_flow`."""
        return await self._post("champion_challenger", {"code": code, "data": [_as_document(ttable)]})

    async def ocr(self, endcode: str, payload: Document, module: str | None = None) -> Document:
        """Read a document through the OCR service.

        Args:
            endcode: OCR reader code, appended to the endpoint path.
            payload: Applicant data sent along with the request.
            module: Optional verification module; tax modules set ``data_type``.

        Returns:
            The OCR response.
        """
        body = dict(payload)
        data_type = _OCR_DATA_TYPES.get((module or "").lower())
        if data_type:
            body["data_type"] = data_type
        return await self._post("ocr", body, suffix=endcode)

    async def applicant_data(self, app_id: str) -> Document:
        """Collect the applicant's identity data of an application.

        Reads the first row of the ``applicant_data`` service and maps it to the
        body the OCR verification modules expect.

        Args:
            app_id: Application identifier.

        Returns:
            ``app_id``, ``nik``, ``name``, ``birthdate``, ``birthplace``,
            ``address``, ``npwp``, ``income`` and ``phone``; empty when the
            service has no row for the application.
        """
        response = await self._post("applicant_data", {"rsh_id": app_id})
        rows = response.get("data")
        if not isinstance(rows, list) or not rows or not isinstance(rows[0], dict):
            logger.debug("No applicant data for %s", app_id)
            return {}
        row = rows[0]
        return {
            "app_id": app_id,
            "nik": row.get("cst_ktp"),
            "name": _full_name(row),
            "birthdate": row.get("cst_dob"),
            "birthplace": row.get("cst_pob"),
            "address": row.get("cst_address_ktp"),
            "npwp": row.get("cst_npwp"),
            "income": row.get("monthly_income"),
            "phone": row.get("cst_phone_mobile"),
        }

    async def verify_applicant(self, endcode: str, app_id: str, module: str | None = None) -> Document:
        """Collect the applicant's data and send it to an OCR verification module.

        Args:
            endcode: OCR reader code.
            app_id: Application identifier.
            module: Verification module.

        Returns:
            The OCR response.
        """
        return await self.ocr(endcode, await self.applicant_data(app_id), module)

    async def enquiry_privilege(self, source_id: str, user_id: str, app_id: str) -> Document:
        """Ask whether a user may act on a step of an application."""
        return await self._post("enquiry_privilege", {"source": source_id, "user_id": user_id, "tablename": app_id})

    async def notify(self, app_id: str) -> Document:
        """Trigger the workflow notification of an application."""
        return await self._post("notify", {"app_id": app_id})

    async def credit_bureau(self, app_id: str, ttable: TTable | Document | None) -> Document:
        """Request a credit bureau report for the applicant of an application.

        Args:
            app_id: Application identifier.
            ttable: Working record holding the applicant's identity fields.

        Returns:
            The bureau response.
        """
        fields = _as_document(ttable)
        body = {
            "type_data": "Individual",
            "cust_code": fields.get("cst_ktp"),
            "dob": fields.get("cst_dob"),
            "id_number": fields.get("cst_ktp"),
            "usrid": app_id,
            "ttable": app_id,
            "name": _full_name(fields),
        }
        return await self._post("credit_bureau", body)

    async def integration(
        self,
        component_code: str,
        app_no: str,
        data: Document,
        ttable: TTable | Document | None = None,
    ) -> Document:
        """Call an integration component with the working record and step data.

        The step data is merged over the working record, lists element-wise.

        Args:
            component_code: Integration component code.
            app_no: Application number.
            data: Step data.
            ttable: The application's working record.

        Returns:
            The integration response.
        """
        record = _as_document(ttable)
        record.pop("_id", None)
        body = {
            "code": component_code.upper(),
            "appno": app_no,
            app_no: merge_documents(record, data, merge_arrays=True),
        }
        return await self._post("integration", body)

    async def dynamic_form(self, form_id: str, app_id: str) -> Document:
        """Resolve the dynamic form shown for a step."""
        return await self._post("dynamic_form", {"form_id": form_id, "tablename": app_id})

    async def xml_data(self, request_filename: str, response_filename: str, app_id: str) -> Document:
        """Execute an XML request/response template pair against an application."""
        body = {"request_filename": request_filename, "response_filename": response_filename, "tablename": app_id}
        return await self._post("xml_data", body)

    async def kbij(self, app_id: str) -> Document:
        """Request the KBIJ product purchase check of an application."""
        return await self._post("kbij", {"rsh_id": app_id, "tablename": app_id})

    async def check_previous_action(
        self,
        workflow_id: str | int,
        app_id: str,
        source_id: str,
        label: str,
        edge_id: str,
    ) -> Document:
        """Ask the workflow service whether the action before an edge was taken.

        Args:
            workflow_id: Workflow id or code.
            app_id: Application identifier.
            source_id: Source node of the edge.
            label: Edge label.
            edge_id: Edge id.

        Returns:
            The workflow service response.
        """
        body = {
            "workflow_id": str(workflow_id),
            "app_id": app_id,
            "source_id": source_id,
            "label": label,
            "edge_id": edge_id,
        }
        return await self._post("check_previous_action", body)

    async def _post(self, name: str, payload: Document, suffix: str | None = None) -> Document:
        url = self.config.url_for(name, suffix)
        try:
            response = await self.client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.error("Connector %s request to %s failed: %s", name, url, e)
            raise ConnectorError(name, str(e)) from e

        if self.config.ensure_success and response.is_error:
            raise ConnectorError(name, response.reason_phrase or "error response", response.status_code)

        if not response.content:
            return {}
        try:
            body: Any = response.json()
        except ValueError as e:
            raise ConnectorError(name, "response is not JSON", response.status_code) from e

        logger.debug("Connector %s answered %d", name, response.status_code)
        return body if isinstance(body, dict) else {"data": body}


def _as_document(ttable: TTable | Document | None) -> Document:
    if ttable is None:
        return {}
    if isinstance(ttable, TTable):
        return ttable.to_document()
    return dict(ttable)


def _full_name(fields: Document) -> str:
    return f"{fields.get('cst_fname') or ''} {fields.get('cst_lname') or ''}".strip()
