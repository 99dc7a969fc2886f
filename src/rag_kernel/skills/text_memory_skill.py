"""
Text Memory Skill - Semantic memory exposed as kernel functions

Import it under a skill name to make retrieval callable from prompt
templates:

    kernel.import_skill(TextMemorySkill(memory), "memory")
    "Context: {{memory.recall $question}}"

License: MIT
"""

from typing import Dict, Optional
import logging

from ..core.memory_store import MemoryStore
from ..exceptions import InvalidArgumentError
from ..orchestration.context import ContextVariables
from ..orchestration.functions import ParameterSpec, kernel_function
from ..utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)

COLLECTION_PARAM = "collection"
RELEVANCE_PARAM = "relevance"
LIMIT_PARAM = "limit"
KEY_PARAM = "key"

DEFAULT_COLLECTION = "generic"
DEFAULT_RELEVANCE = 0.75
DEFAULT_LIMIT = 1


class TextMemorySkill:
    """
    Native ``recall`` and ``save`` functions over a MemoryStore.

    Parameters left unset in the context fall back to the defaults given
    here.
    """

    def __init__(
        self,
        memory: MemoryStore,
        default_collection: str = DEFAULT_COLLECTION,
        default_relevance: float = DEFAULT_RELEVANCE,
        default_limit: int = DEFAULT_LIMIT,
        separator: str = "\n\n",
    ):
        self.memory = memory
        self.default_collection = default_collection
        self.default_relevance = default_relevance
        self.default_limit = default_limit
        self.separator = separator

    def _collection(self, params: Dict[str, str]) -> str:
        return params.get(COLLECTION_PARAM) or self.default_collection

    @kernel_function(
        description="Search memory for text related to the input",
        parameters=[
            ParameterSpec("input", "Text to search for"),
            ParameterSpec(COLLECTION_PARAM, "Collection to search", ""),
            ParameterSpec(RELEVANCE_PARAM, "Lowest relevance to include", ""),
            ParameterSpec(LIMIT_PARAM, "Maximum number of memories", ""),
        ],
    )
    async def recall(
        self,
        params: Dict[str, str],
        context: ContextVariables,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> str:
        query = params["input"]
        collection = self._collection(params)

        try:
            relevance = float(params.get(RELEVANCE_PARAM) or self.default_relevance)
            limit = int(params.get(LIMIT_PARAM) or self.default_limit)
        except ValueError as e:
            raise InvalidArgumentError(f"Invalid recall parameter: {str(e)}") from e

        results = await self.memory.search(
            collection,
            query,
            limit=limit,
            min_relevance=relevance,
            cancellation_token=cancellation_token,
        )

        logger.debug(f"Recalled {len(results)} memories from {collection}")
        return self.separator.join(result.text for result in results)

    @kernel_function(
        description="Save the input to memory",
        parameters=[
            ParameterSpec("input", "Text to save"),
            ParameterSpec(COLLECTION_PARAM, "Target collection", ""),
            ParameterSpec(KEY_PARAM, "Record id", ""),
        ],
    )
    async def save(
        self,
        params: Dict[str, str],
        context: ContextVariables,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> str:
        collection = self._collection(params)
        record_id = await self.memory.save(
            collection,
            params["input"],
            id=params.get(KEY_PARAM) or None,
            cancellation_token=cancellation_token,
        )
        logger.debug(f"Saved memory {record_id} to {collection}")
        return record_id
