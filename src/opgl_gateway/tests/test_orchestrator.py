import pytest

from opgl_gateway.clients.services import DownstreamError
from opgl_gateway.core.orchestrator import (
    STEP_ANALYSIS,
    STEP_HISTORY,
    STEP_PROFILE,
    Orchestrator,
    PipelineError,
)


@pytest.fixture
def orchestrator(fake_proxy, logger) -> Orchestrator:
    return Orchestrator(fake_proxy, logger, match_count=20)


def test_history_uses_profile_identifier(orchestrator, fake_proxy):
    result = orchestrator.analyze("kr", "Faker", "KR1")

    assert result == fake_proxy.analysis
    assert [c[0] for c in fake_proxy.calls] == [
        "get_summoner_by_riot_id",
        "get_matches_by_puuid",
        "analyze_player",
    ]
    assert fake_proxy.called("get_matches_by_puuid") == [("get_matches_by_puuid", "kr", "p1", 20)]
    assert not fake_proxy.called("get_matches_by_riot_id")


def test_analysis_receives_profile_and_history(orchestrator, fake_proxy):
    orchestrator.analyze("kr", "Faker", "KR1")

    _, summoner, matches = fake_proxy.called("analyze_player")[0]
    assert summoner.puuid == "p1"
    assert [m.match_id for m in matches] == ["KR_1", "KR_2"]


def test_profile_failure_stops_pipeline(orchestrator, fake_proxy):
    fake_proxy.failures["get_summoner_by_riot_id"] = DownstreamError("data", 404, "not found")

    with pytest.raises(PipelineError) as exc_info:
        orchestrator.analyze("kr", "Nobody", "KR1")

    assert exc_info.value.step == STEP_PROFILE
    assert exc_info.value.error.status_code == 404
    assert len(fake_proxy.calls) == 1


def test_history_failure_skips_analysis(orchestrator, fake_proxy):
    fake_proxy.failures["get_matches_by_puuid"] = DownstreamError("data", 503, "unavailable")

    with pytest.raises(PipelineError) as exc_info:
        orchestrator.analyze("kr", "Faker", "KR1")

    assert exc_info.value.step == STEP_HISTORY
    assert "503" in str(exc_info.value)
    assert "unavailable" in str(exc_info.value)
    assert not fake_proxy.called("analyze_player")


def test_analysis_failure_reports_step(orchestrator, fake_proxy):
    fake_proxy.failures["analyze_player"] = DownstreamError("cortex", 500, "boom")

    with pytest.raises(PipelineError) as exc_info:
        orchestrator.analyze("kr", "Faker", "KR1")

    assert exc_info.value.step == STEP_ANALYSIS
    assert exc_info.value.error.service == "cortex"


def test_recent_matches_passes_name_and_tag(orchestrator, fake_proxy):
    matches = orchestrator.recent_matches("euw", "Caps", "EUW", 5)

    assert len(matches) == 2
    assert fake_proxy.calls == [("get_matches_by_riot_id", "euw", "Caps", "EUW", 5)]
