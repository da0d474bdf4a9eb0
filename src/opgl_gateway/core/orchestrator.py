import logging

from opgl_gateway.clients.models import AnalysisResult, Match, Summoner
from opgl_gateway.clients.services import DownstreamError, ServiceProxy

STEP_PROFILE = "profile"
STEP_HISTORY = "history"
STEP_ANALYSIS = "analysis"

DEFAULT_MATCH_COUNT = 20


class PipelineError(Exception):
    """The analysis pipeline stopped at ``step`` because of ``error``."""

    def __init__(self, step: str, error: DownstreamError):
        self.step = step
        self.error = error
        super().__init__(f"{step} step failed: {error}")


class Orchestrator:
    def __init__(
        self,
        proxy: ServiceProxy,
        logger: logging.Logger,
        match_count: int = DEFAULT_MATCH_COUNT,
    ):
        self._proxy = proxy
        self._logger = logger
        self._match_count = match_count

    def lookup_summoner(self, region: str, game_name: str, tag_line: str) -> Summoner:
        try:
            return self._proxy.get_summoner_by_riot_id(region, game_name, tag_line)
        except DownstreamError as exc:
            raise PipelineError(STEP_PROFILE, exc) from exc

    def recent_matches(self, region: str, game_name: str, tag_line: str, count: int) -> list[Match]:
        try:
            return self._proxy.get_matches_by_riot_id(region, game_name, tag_line, count)
        except DownstreamError as exc:
            raise PipelineError(STEP_HISTORY, exc) from exc

    def analyze(self, region: str, game_name: str, tag_line: str) -> AnalysisResult:
        """
        Profile lookup, then match history by PUUID, then analysis.

        Each step needs the previous one's output. The first failure is
        raised as a ``PipelineError`` and nothing after it runs.
        """
        summoner = self.lookup_summoner(region, game_name, tag_line)

        try:
            matches = self._proxy.get_matches_by_puuid(region, summoner.puuid, self._match_count)
        except DownstreamError as exc:
            raise PipelineError(STEP_HISTORY, exc) from exc

        try:
            result = self._proxy.analyze_player(summoner, matches)
        except DownstreamError as exc:
            raise PipelineError(STEP_ANALYSIS, exc) from exc

        self._logger.info("analysis_completed", extra={"region": region, "match_count": len(matches)})
        return result
