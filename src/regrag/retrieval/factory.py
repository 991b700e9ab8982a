"""Registry of named retrieval strategies."""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..errors import StrategyNotFoundError
from ..observability.logging import get_logger
from ..storage.base import DocumentStore, EmbeddingOracle
from .base import DEFAULT_MAX_CONTEXT_TOKENS, RetrievalStrategy
from .hybrid import HybridSearchStrategy
from .keyword import KeywordSearchStrategy
from .knowledge_graph import KnowledgeGraphSearchStrategy
from .vector import VectorSearchStrategy

if TYPE_CHECKING:
    from ..core.cache import CacheManager

logger = get_logger(__name__)

UNKNOWN_STRATEGY_DESCRIPTION = "Strategy not found"


@dataclass
class StrategyLookup:
    """Outcome of a non-raising lookup."""

    name: str
    strategy: RetrievalStrategy | None
    available: list[str]

    @property
    def found(self) -> bool:
        return self.strategy is not None


class RetrievalStrategyFactory:
    def __init__(
        self,
        store: DocumentStore,
        embedder: EmbeddingOracle,
        similarity_threshold: float = 0.3,
        min_content_length: int = 50,
        max_context_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS,
        cache_manager: "CacheManager | None" = None,
    ):
        self._strategies: dict[str, RetrievalStrategy] = {}

        vector = VectorSearchStrategy(
            store,
            embedder,
            similarity_threshold=similarity_threshold,
            min_content_length=min_content_length,
            max_context_tokens=max_context_tokens,
            cache_manager=cache_manager,
        )
        keyword = KeywordSearchStrategy(store, max_context_tokens=max_context_tokens)

        self.register_strategy("vector", vector)
        self.register_strategy("keyword", keyword)
        self.register_strategy("hybrid", HybridSearchStrategy(vector, keyword, max_context_tokens))
        self.register_strategy(
            "knowledge_graph", KnowledgeGraphSearchStrategy(store, vector, max_context_tokens)
        )

    def register_strategy(self, name: str, strategy: RetrievalStrategy) -> None:
        if name in self._strategies:
            logger.info(f"Replacing retrieval strategy '{name}'")
        self._strategies[name] = strategy

    def create_strategy(self, name: str) -> RetrievalStrategy:
        strategy = self._strategies.get(name)
        if strategy is None:
            raise StrategyNotFoundError(name, self.get_available_strategies())
        return strategy

    def resolve(self, name: str) -> StrategyLookup:
        return StrategyLookup(
            name=name,
            strategy=self._strategies.get(name),
            available=self.get_available_strategies(),
        )

    def get_available_strategies(self) -> list[str]:
        return list(self._strategies)

    def get_strategy_description(self, name: str) -> str:
        strategy = self._strategies.get(name)
        return strategy.get_description() if strategy else UNKNOWN_STRATEGY_DESCRIPTION

    def get_all_strategies_with_descriptions(self) -> list[dict[str, str]]:
        return [
            {"name": name, "description": strategy.get_description()}
            for name, strategy in self._strategies.items()
        ]
