from ..config import SCORER_EXTERNAL, Settings
from ..errors import ExternalScorerError
from .aggregator import HeuristicScorer, ScoreAggregator, Scorer
from .external import ExternalModelScorer

__all__ = ["build_scorer", "ExternalModelScorer", "HeuristicScorer", "ScoreAggregator", "Scorer"]


def build_scorer(settings: Settings, logger=None) -> Scorer:
    """Pick the Scorer variant named by configuration."""
    if settings.scorer == SCORER_EXTERNAL:
        if not settings.llm_api_key:
            raise ExternalScorerError("FAIRHIRE_SCORER=external needs FAIRHIRE_LLM_API_KEY or OPENAI_API_KEY")
        return ExternalModelScorer(
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            timeout=settings.llm_timeout,
            logger=logger,
        )
    return HeuristicScorer()
