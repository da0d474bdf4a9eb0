from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from opgl_gateway import errors
from opgl_gateway.clients.models import AnalysisResult, Match, SummonerResponse
from opgl_gateway.clients.services import CORTEX_SERVICE
from opgl_gateway.core.orchestrator import DEFAULT_MATCH_COUNT, STEP_PROFILE, Orchestrator, PipelineError
from opgl_gateway.deps.client_auth import ClientKeyRoute
from opgl_gateway.deps.components import get_orchestrator

router = APIRouter(
    prefix="/api/v1",
    tags=["gateway"],
    route_class=ClientKeyRoute,
)


class RiotIdIn(BaseModel):
    region: str = Field(min_length=1)
    gameName: str = Field(min_length=1)
    tagLine: str = Field(min_length=1)


class MatchesIn(RiotIdIn):
    count: int = 0


def _to_api_error(exc: PipelineError, riot_id: RiotIdIn) -> errors.APIError:
    downstream = exc.error
    if exc.step == STEP_PROFILE and downstream.status_code == 404:
        return errors.player_not_found(riot_id.gameName, riot_id.tagLine)
    if downstream.service == CORTEX_SERVICE:
        return errors.cortex_service_error(str(exc))
    return errors.data_service_error(str(exc))


@router.post("/summoner", response_model=SummonerResponse, response_model_by_alias=True)
def get_summoner(payload: RiotIdIn, orchestrator: Orchestrator = Depends(get_orchestrator)):
    try:
        summoner = orchestrator.lookup_summoner(payload.region, payload.gameName, payload.tagLine)
    except PipelineError as exc:
        raise _to_api_error(exc, payload)
    return SummonerResponse.from_summoner(summoner)


@router.post("/matches", response_model=list[Match], response_model_by_alias=True)
def get_matches(payload: MatchesIn, orchestrator: Orchestrator = Depends(get_orchestrator)):
    count = payload.count if payload.count > 0 else DEFAULT_MATCH_COUNT
    try:
        return orchestrator.recent_matches(payload.region, payload.gameName, payload.tagLine, count)
    except PipelineError as exc:
        raise _to_api_error(exc, payload)


@router.post("/analyze", response_model=AnalysisResult, response_model_by_alias=True)
def analyze_player(payload: RiotIdIn, orchestrator: Orchestrator = Depends(get_orchestrator)):
    try:
        return orchestrator.analyze(payload.region, payload.gameName, payload.tagLine)
    except PipelineError as exc:
        raise _to_api_error(exc, payload)
