"""Client for the shared automation engine.

The orchestration core depends on five engine operations and only on their
success/failure semantics:

- create_artifact(payload, name) -> external id
- activate(external_id)
- deactivate(external_id)
- fetch_artifact(external_id) -> representation, or None when it is gone
- exercise(external_id, sample) -> result

N8nEngineClient implements them against the n8n public REST API with httpx.
Callers bound every call with their own timeout; the client's httpx timeout
is only a backstop.

Example:
    async with N8nEngineClient("https://n8n.example.com", api_key="...") as engine:
        external_id = await engine.create_artifact(payload, "FOLDER-P01-U1 Daily report")
        await engine.activate(external_id)
"""

import logging
from typing import Any, Optional, Protocol

import httpx

logger = logging.getLogger(__name__)


class EngineError(Exception):
    """An engine call failed.

    Attributes:
        operation: Engine operation that failed.
        status_code: HTTP status, when the engine answered.
        reason: Description of the failure.
    """

    def __init__(
        self,
        operation: str,
        reason: str,
        status_code: Optional[int] = None,
    ) -> None:
        """Initialize with operation, reason and optional status.

        Args:
            operation: Engine operation name.
            reason: Why the call failed.
            status_code: HTTP status code, if any.
        """
        self.operation = operation
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Engine {operation} failed: {reason}")


class EngineTimeout(EngineError):
    """An engine call exceeded the caller's timeout."""

    def __init__(self, operation: str, timeout: float) -> None:
        super().__init__(operation, f"no answer within {timeout:g}s")
        self.timeout = timeout


class ExerciseNotSupported(EngineError):
    """The engine cannot run the artifact synthetically."""

    def __init__(self, reason: str) -> None:
        super().__init__("exercise", reason)


class AutomationEngine(Protocol):
    """Operations the orchestration core needs from the engine."""

    async def create_artifact(self, payload: dict[str, Any], name: str) -> str:
        ...

    async def activate(self, external_id: str) -> None:
        ...

    async def deactivate(self, external_id: str) -> None:
        ...

    async def fetch_artifact(self, external_id: str) -> Optional[dict[str, Any]]:
        ...

    async def exercise(self, external_id: str, sample: dict[str, Any]) -> dict[str, Any]:
        ...


class N8nEngineClient:
    """AutomationEngine backed by the n8n REST API.

    Attributes:
        base_url: Engine base URL without trailing slash.
        timeout: httpx timeout in seconds.
    """

    API_PREFIX = "/api/v1"

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Engine base URL.
            api_key: API key sent as X-N8N-API-KEY.
            timeout: httpx timeout in seconds.
            client: Optional preconfigured AsyncClient (tests use a
                MockTransport here).
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._get_headers(api_key),
            timeout=timeout,
        )

    @staticmethod
    def _get_headers(api_key: str) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if api_key:
            headers["X-N8N-API-KEY"] = api_key
        return headers

    async def __aenter__(self) -> "N8nEngineClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        json_body: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, path, json=json_body)
        except httpx.TimeoutException as e:
            raise EngineError(operation, "request timed out") from e
        except httpx.RequestError as e:
            raise EngineError(operation, f"connection error: {type(e).__name__}") from e
        logger.debug("%s %s -> %d", method, path, response.status_code)
        return response

    @staticmethod
    def _raise_for_status(operation: str, response: httpx.Response) -> None:
        if response.is_success:
            return
        try:
            body = response.json()
            message = body.get("message") if isinstance(body, dict) else None
        except ValueError:
            message = None
        raise EngineError(
            operation,
            message or f"HTTP {response.status_code}",
            status_code=response.status_code,
        )

    @staticmethod
    def _json_object(operation: str, response: httpx.Response) -> dict[str, Any]:
        """Decode a JSON object body or fail the operation."""
        try:
            body = response.json()
        except ValueError as e:
            raise EngineError(
                operation, "malformed engine response", status_code=response.status_code
            ) from e
        if not isinstance(body, dict):
            raise EngineError(
                operation, "malformed engine response", status_code=response.status_code
            )
        return body

    async def create_artifact(self, payload: dict[str, Any], name: str) -> str:
        """Create a workflow and return its id."""
        body = dict(payload)
        body["name"] = name
        response = await self._request(
            "create", "POST", f"{self.API_PREFIX}/workflows", body
        )
        self._raise_for_status("create", response)
        external_id = self._json_object("create", response).get("id")
        if not external_id:
            raise EngineError("create", "response carried no workflow id")
        return str(external_id)

    async def activate(self, external_id: str) -> None:
        """Activate a workflow."""
        response = await self._request(
            "activate", "POST", f"{self.API_PREFIX}/workflows/{external_id}/activate"
        )
        self._raise_for_status("activate", response)

    async def deactivate(self, external_id: str) -> None:
        """Deactivate a workflow."""
        response = await self._request(
            "deactivate", "POST", f"{self.API_PREFIX}/workflows/{external_id}/deactivate"
        )
        self._raise_for_status("deactivate", response)

    async def fetch_artifact(self, external_id: str) -> Optional[dict[str, Any]]:
        """Fetch a workflow; None when the engine reports 404."""
        response = await self._request(
            "fetch", "GET", f"{self.API_PREFIX}/workflows/{external_id}"
        )
        if response.status_code == 404:
            return None
        self._raise_for_status("fetch", response)
        return self._json_object("fetch", response)

    async def exercise(self, external_id: str, sample: dict[str, Any]) -> dict[str, Any]:
        """Send a sample payload to the workflow's webhook.

        n8n has no public API to run an arbitrary workflow, so only
        webhook-triggered workflows can be exercised.

        Raises:
            ExerciseNotSupported: If the workflow has no webhook trigger.
            EngineError: If the webhook call fails.
        """
        artifact = await self.fetch_artifact(external_id)
        if artifact is None:
            raise EngineError("exercise", "artifact not found", status_code=404)

        path = None
        nodes = artifact.get("nodes", [])
        if not isinstance(nodes, list):
            raise EngineError("exercise", "malformed engine response")
        for node in nodes:
            if isinstance(node, dict) and node.get("type") == "n8n-nodes-base.webhook":
                parameters = node.get("parameters")
                path = parameters.get("path") if isinstance(parameters, dict) else None
                break
        if not path:
            raise ExerciseNotSupported("workflow has no webhook trigger")

        response = await self._request("exercise", "POST", f"/webhook/{path}", sample)
        self._raise_for_status("exercise", response)
        try:
            return {"status_code": response.status_code, "body": response.json()}
        except ValueError:
            return {"status_code": response.status_code, "body": response.text}
