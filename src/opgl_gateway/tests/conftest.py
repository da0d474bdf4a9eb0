import logging
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from opgl_gateway.clients.models import AnalysisResult, Match, Summoner
from opgl_gateway.clients.services import DownstreamError
from opgl_gateway.config import Settings
from opgl_gateway.deps.db import build_engine, build_session_factory
from opgl_gateway.main import create_app
from opgl_gateway.models.base import Base
from opgl_gateway.stores.accounts import AccountStore
from opgl_gateway.stores.api_keys import ApiKeyStore


class FakeServiceProxy:
    """Records every downstream call; ``failures`` maps a method name to the error it raises."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.failures: dict[str, DownstreamError] = {}
        self.summoner = Summoner(
            id="s1",
            account_id="a1",
            puuid="p1",
            name="Faker",
            profile_icon_id=6,
            summoner_level=500,
        )
        self.matches = [Match(match_id="KR_1"), Match(match_id="KR_2")]
        self.analysis = AnalysisResult(
            player_stats={"winRate": 0.6},
            improvement_areas=["ward more"],
            analyzed_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )

    def _record(self, name: str, *args):
        self.calls.append((name, *args))
        if name in self.failures:
            raise self.failures[name]

    def called(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]

    def get_summoner_by_riot_id(self, region, game_name, tag_line):
        self._record("get_summoner_by_riot_id", region, game_name, tag_line)
        return self.summoner

    def get_matches_by_riot_id(self, region, game_name, tag_line, count):
        self._record("get_matches_by_riot_id", region, game_name, tag_line, count)
        return self.matches

    def get_matches_by_puuid(self, region, puuid, count):
        self._record("get_matches_by_puuid", region, puuid, count)
        return self.matches

    def analyze_player(self, summoner, matches):
        self._record("analyze_player", summoner, matches)
        return self.analysis


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("opgl_gateway.tests")


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'gateway.db'}",
        jwt_secret="test-secret-0123456789abcdef0123456789",
        log_level="WARNING",
    )


@pytest.fixture
def engine(settings):
    engine = build_engine(settings)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def key_store(engine) -> ApiKeyStore:
    return ApiKeyStore(build_session_factory(engine))


@pytest.fixture
def account_store(engine) -> AccountStore:
    return AccountStore(build_session_factory(engine))


@pytest.fixture
def fake_proxy() -> FakeServiceProxy:
    return FakeServiceProxy()


@pytest.fixture
def app(settings, engine, fake_proxy):
    return create_app(settings, engine=engine, service_proxy=fake_proxy)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def create_key(client: TestClient, name: str = "test-key", **limits) -> dict:
    r = client.post("/api/v1/admin/apikeys", json={"name": name, **limits})
    assert r.status_code == 201, r.text
    return r.json()


@pytest.fixture
def api_key(client) -> dict:
    return create_key(client, rateLimit=50, rateWindowSeconds=3600)


@pytest.fixture
def new_key(client):
    def make(name: str = "test-key", **limits) -> dict:
        return create_key(client, name, **limits)

    return make
