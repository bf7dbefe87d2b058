"""
Thin client for the Sanity HTTP API (GROQ queries and mutations).

Configuration is always passed in explicitly; `make_store_client` builds a
fresh client from the environment for entry points that need one.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

import requests

from settings import StoreConfig

logger = logging.getLogger(__name__)

DOCUMENT_EXISTS_QUERY = "*[_id == $id][0] { _id }"


class StoreError(Exception):
    """A request to the document store failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message if status_code is None else f"{message} (HTTP {status_code})")


class SanityClient:
    def __init__(
        self,
        config: StoreConfig,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ):
        self.config = config
        self.session = session or requests.Session()
        self.timeout = timeout
        if config.token:
            self.session.headers.update({"Authorization": f"Bearer {config.token}"})

    @property
    def base_url(self) -> str:
        host = "apicdn.sanity.io" if self.config.use_cdn else "api.sanity.io"
        return f"https://{self.config.project_id}.{host}/v{self.config.api_version}"

    def _raise_for_response(self, resp: requests.Response, action: str) -> None:
        if resp.status_code < 400:
            return
        try:
            body = resp.json()
        except ValueError:
            body = {}
        detail = ""
        if isinstance(body, Mapping):
            error = body.get("error")
            if isinstance(error, Mapping):
                detail = error.get("description") or error.get("type") or ""
            elif error:
                detail = str(error)
            detail = detail or body.get("message") or ""
        raise StoreError(f"{action} failed" + (f": {detail}" if detail else ""), resp.status_code)

    def fetch(self, query: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Run a GROQ query and return its `result`."""
        query_params: Dict[str, str] = {"query": query}
        for key, value in (params or {}).items():
            query_params[f"${key}"] = json.dumps(value)
        url = f"{self.base_url}/data/query/{self.config.dataset}"
        try:
            resp = self.session.get(url, params=query_params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise StoreError(f"Query failed: {exc}") from exc
        self._raise_for_response(resp, "Query")
        return resp.json().get("result")

    def document_exists(self, document_id: str) -> bool:
        return self.fetch(DOCUMENT_EXISTS_QUERY, {"id": document_id}) is not None

    def mutate(self, mutations: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Submit mutations; several mutations in one call commit atomically."""
        url = f"{self.base_url}/data/mutate/{self.config.dataset}"
        try:
            resp = self.session.post(
                url,
                params={"returnIds": "true"},
                json={"mutations": mutations},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise StoreError(f"Mutation failed: {exc}") from exc
        self._raise_for_response(resp, "Mutation")
        logger.debug("Committed %d mutation(s) to %s", len(mutations), self.config.dataset)
        return resp.json()

    def create(self, document: Mapping[str, Any]) -> Dict[str, Any]:
        return self.mutate([{"create": dict(document)}])

    def create_or_replace(self, document: Mapping[str, Any]) -> Dict[str, Any]:
        return self.mutate([{"createOrReplace": dict(document)}])

    def transaction(self) -> "Transaction":
        return Transaction(self)


class Transaction:
    """Collects mutations and submits them in a single request."""

    def __init__(self, client: SanityClient):
        self.client = client
        self.mutations: List[Dict[str, Any]] = []

    def __len__(self) -> int:
        return len(self.mutations)

    def create_or_replace(self, document: Mapping[str, Any]) -> "Transaction":
        self.mutations.append({"createOrReplace": dict(document)})
        return self

    def create_if_not_exists(self, document: Mapping[str, Any]) -> "Transaction":
        self.mutations.append({"createIfNotExists": dict(document)})
        return self

    def commit(self) -> Dict[str, Any]:
        if not self.mutations:
            return {"results": []}
        return self.client.mutate(self.mutations)


def make_store_client(dataset: Optional[str] = None, require_token: bool = True) -> SanityClient:
    """Build a new client from the environment; raises ConfigurationError when incomplete."""
    return SanityClient(StoreConfig.from_env(dataset=dataset, require_token=require_token))
