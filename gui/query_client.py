from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from core.models import GraphData, GraphDataError

LOG = logging.getLogger(__name__)

QUERY_PATH = "/api/v1/query/read"
TRANSFORM_PATH = "/api/v1/transform/pxlsviz"
TRANSFORM_PARAMETERS = {
    "source_node_tag": "start",
    "target_node_tag": "end",
    "relationship_type_tag": "type",
}


class QueryServiceError(RuntimeError):
    """The query service could not produce a graph for a query."""


@dataclass(frozen=True)
class GraphResponse:
    success: bool
    data: Optional[GraphData] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: GraphData) -> "GraphResponse":
        return cls(success=True, data=data)

    @classmethod
    def failed(cls, error: str) -> "GraphResponse":
        return cls(success=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        if self.success and self.data is not None:
            return {"success": True, "data": self.data.to_dict()}
        return {"success": False, "error": self.error or "Internal server error"}


class GraphQueryClient:
    """Runs a query on the backend and transforms the rows into GraphData."""

    def __init__(self, backend_url: str, timeout: float = 30.0, session: Optional[requests.Session] = None) -> None:
        self.backend_url = (backend_url or "").rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def _post(self, path: str, payload: Dict[str, Any], failure: str) -> Any:
        url = f"{self.backend_url}{path}"
        try:
            resp = self._session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise QueryServiceError(f"{failure}: {exc}") from exc
        if not resp.ok:
            raise QueryServiceError(f"{failure}: {resp.reason or resp.status_code}")
        try:
            return resp.json()
        except ValueError as exc:
            raise QueryServiceError(f"{failure}: response is not JSON") from exc

    def fetch_payload(self, query: str) -> Any:
        if not self.backend_url:
            raise QueryServiceError("Backend URL not configured")
        result = self._post(QUERY_PATH, {"query": query}, "Backend query failed")
        rows = result.get("results") if isinstance(result, dict) else None
        return self._post(
            TRANSFORM_PATH,
            {"input_json": rows, "parameters": dict(TRANSFORM_PARAMETERS)},
            "Transformation failed",
        )

    def fetch_graph(self, query: str) -> GraphResponse:
        query = (query or "").strip()
        if not query:
            return GraphResponse.failed("Query is required")
        try:
            payload = self.fetch_payload(query)
            data = GraphData.from_payload(payload)
        except (QueryServiceError, GraphDataError) as exc:
            LOG.warning("query-failed", extra={"query": query, "error": str(exc)})
            return GraphResponse.failed(str(exc))
        LOG.info("query-complete", extra={"query": query, "nodes": len(data.nodes), "relationships": len(data.relationships)})
        return GraphResponse.ok(data)
