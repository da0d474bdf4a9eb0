"""
Clients for the two downstream services.

``ServiceProxy`` is what the gateway depends on; ``HttpServiceProxy`` is the
production implementation. Tests pass their own object with the same
methods.
"""
import json
from typing import Any, Protocol

import httpx
from pydantic import TypeAdapter, ValidationError

from opgl_gateway.clients.models import AnalysisResult, Match, Summoner

DATA_SERVICE = "data"
CORTEX_SERVICE = "cortex"

_matches_adapter = TypeAdapter(list[Match])


class DownstreamError(Exception):
    """
    A downstream call did not produce a usable 200 response.

    ``status_code`` is None when no HTTP response was received at all.
    """

    def __init__(self, service: str, status_code: int | None, body: str):
        self.service = service
        self.status_code = status_code
        self.body = body
        if status_code is None:
            message = f"{service} service call failed: {body}"
        else:
            message = f"{service} service returned error {status_code}: {body}"
        super().__init__(message)


class ServiceProxy(Protocol):
    def get_summoner_by_riot_id(self, region: str, game_name: str, tag_line: str) -> Summoner:
        ...

    def get_matches_by_riot_id(
        self, region: str, game_name: str, tag_line: str, count: int
    ) -> list[Match]:
        ...

    def get_matches_by_puuid(self, region: str, puuid: str, count: int) -> list[Match]:
        ...

    def analyze_player(self, summoner: Summoner, matches: list[Match]) -> AnalysisResult:
        ...


class HttpServiceProxy:
    def __init__(
        self,
        data_service_url: str,
        cortex_service_url: str,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        self.data_service_url = data_service_url.rstrip("/")
        self.cortex_service_url = cortex_service_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def _post(self, service: str, url: str, payload: dict[str, Any]) -> Any:
        try:
            response = self._client.post(url, json=payload)
        except httpx.HTTPError as exc:
            raise DownstreamError(service, None, str(exc)) from exc

        if response.status_code != httpx.codes.OK:
            raise DownstreamError(service, response.status_code, response.text)

        try:
            return response.json()
        except json.JSONDecodeError as exc:
            raise DownstreamError(service, response.status_code, "invalid JSON in response") from exc

    def get_summoner_by_riot_id(self, region: str, game_name: str, tag_line: str) -> Summoner:
        data = self._post(
            DATA_SERVICE,
            f"{self.data_service_url}/api/v1/summoner",
            {"region": region, "gameName": game_name, "tagLine": tag_line},
        )
        return _decode(DATA_SERVICE, Summoner.model_validate, data)

    def get_matches_by_riot_id(
        self, region: str, game_name: str, tag_line: str, count: int
    ) -> list[Match]:
        data = self._post(
            DATA_SERVICE,
            f"{self.data_service_url}/api/v1/matches",
            {"region": region, "gameName": game_name, "tagLine": tag_line, "count": count},
        )
        return _decode(DATA_SERVICE, _matches_adapter.validate_python, data)

    def get_matches_by_puuid(self, region: str, puuid: str, count: int) -> list[Match]:
        data = self._post(
            DATA_SERVICE,
            f"{self.data_service_url}/api/v1/matches",
            {"region": region, "puuid": puuid, "count": count},
        )
        return _decode(DATA_SERVICE, _matches_adapter.validate_python, data)

    def analyze_player(self, summoner: Summoner, matches: list[Match]) -> AnalysisResult:
        payload = {
            "summoner": summoner.model_dump(mode="json", by_alias=True),
            "matches": [m.model_dump(mode="json", by_alias=True) for m in matches],
        }
        data = self._post(CORTEX_SERVICE, f"{self.cortex_service_url}/api/v1/analyze", payload)
        return _decode(CORTEX_SERVICE, AnalysisResult.model_validate, data)


def _decode(service: str, parse, data: Any):
    try:
        return parse(data)
    except ValidationError as exc:
        raise DownstreamError(service, httpx.codes.OK, f"unexpected response shape: {exc.error_count()} errors") from exc
