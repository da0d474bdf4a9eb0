from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Summoner(CamelModel):
    """Player profile as returned by the data service (internal use: carries the PUUID)."""

    id: str = ""
    account_id: str = ""
    puuid: str
    name: str = ""
    profile_icon_id: int = 0
    summoner_level: int = 0


class SummonerResponse(CamelModel):
    """Profile returned to external callers. The PUUID is not exposed."""

    id: str
    account_id: str
    name: str
    profile_icon_id: int
    summoner_level: int

    @classmethod
    def from_summoner(cls, summoner: Summoner) -> "SummonerResponse":
        return cls(
            id=summoner.id,
            account_id=summoner.account_id,
            name=summoner.name,
            profile_icon_id=summoner.profile_icon_id,
            summoner_level=summoner.summoner_level,
        )


class Participant(CamelModel):
    puuid: str = ""
    summoner_name: str = ""
    champion_id: int = 0
    champion_name: str = ""
    kills: int = 0
    deaths: int = 0
    assists: int = 0
    gold_earned: int = 0
    total_damage_dealt_to_champions: int = 0
    total_damage_taken: int = 0
    vision_score: int = 0
    total_minions_killed: int = 0
    win: bool = False
    team_position: str = ""


class Match(CamelModel):
    match_id: str
    game_creation: datetime | None = None
    game_duration: int = 0
    game_mode: str = ""
    game_type: str = ""
    participants: list[Participant] = Field(default_factory=list)


class AnalysisResult(CamelModel):
    player_stats: Any = None
    improvement_areas: Any = None
    analyzed_at: datetime
