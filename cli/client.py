from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
import typer

from cli.config import CLIConfig


class UpstreamUnavailable(RuntimeError):
    """The tracking service could not be reached or failed server-side."""


class ApiClient:
    """Minimal HTTP client for the bus tracking service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.request_timeout)

    def close(self) -> None:
        self._client.close()

    def update_location(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = self._request("POST", "/api/locations", json=payload)
        if response.status_code == 400:
            raise typer.BadParameter(self._detail_message(response))
        return self._json(response)

    def get_location(self, device_id: str) -> Dict[str, Any]:
        response = self._request("GET", f"/api/locations/{device_id}")
        if response.status_code == 404:
            raise typer.BadParameter(self._detail_message(response))
        return self._json(response)

    def list_locations(self) -> Dict[str, Any]:
        return self._json(self._request("GET", "/api/locations"))

    def get_route(self, route_id: str) -> Dict[str, Any]:
        response = self._request("GET", f"/api/routes/{route_id}")
        if response.status_code == 404:
            raise typer.BadParameter(f"Route {route_id} was not found.")
        return self._json(response)

    def search_routes(self, origin: str = "", destination: str = "") -> Dict[str, Any]:
        params = {"from": origin, "to": destination}
        return self._json(self._request("GET", "/api/routes", params=params))

    def health(self) -> Dict[str, Any]:
        return self._json(self._request("GET", "/health"))

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise UpstreamUnavailable(
                f"Could not reach {self._config.base_url}: {exc}"
            ) from exc
        if response.status_code >= 500:
            raise UpstreamUnavailable(
                f"Service error {response.status_code} from {url}: {self._detail_message(response)}"
            )
        return response

    def _json(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    @staticmethod
    def _detail_message(response: httpx.Response) -> str:
        detail: Optional[Any]
        try:
            detail = response.json().get("detail")
        except ValueError:
            detail = response.text.strip()
        if isinstance(detail, dict):
            detail = detail.get("error") or detail
        return str(detail or "no detail provided.")

    def _handle_http_error(self, exc: httpx.HTTPStatusError) -> None:
        message = (
            f"Request failed with status {exc.response.status_code}: "
            f"{self._detail_message(exc.response)}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
