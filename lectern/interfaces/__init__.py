"""Public interface definitions for all external collaborators.

Every external service (model API, embedding API, database, counter
store, cache) is reached only through the abstract base classes in this
package.  Concrete adapters live in ``lectern/providers/`` and are wired
together in ``lectern/main.py``; tests inject ``MagicMock(spec=...)``
doubles instead.

    Interface             ->  Concrete implementations
    -------------------------------------------------------------------
    ITextExtractor        ->  PyMuPDFTextExtractor
    ILLMProvider          ->  OpenAILLMProvider, AnthropicLLMProvider
    IEmbeddingProvider    ->  OpenAIEmbeddingProvider
    ICounterStore         ->  MemoryCounterStore, RedisCounterStore
    IRateLimiter          ->  MemorySlidingWindowLimiter, RedisSlidingWindowLimiter
    ICacheProvider        ->  MemoryCacheProvider
    IDocumentStore, IChunkStore, IOutlineStore, ICourseOutlineStore,
    ICatalogStore, IProfileStore
                          ->  SQLite* stores sharing one SQLiteDatabase
"""

from lectern.interfaces.cache_provider import ICacheProvider
from lectern.interfaces.embedding_provider import IEmbeddingProvider
from lectern.interfaces.llm_provider import ILLMProvider
from lectern.interfaces.quota_provider import ICounterStore, IRateLimiter
from lectern.interfaces.storage_provider import (
    ICatalogStore,
    IChunkStore,
    ICourseOutlineStore,
    IDocumentStore,
    IOutlineStore,
    IProfileStore,
)
from lectern.interfaces.text_extractor import ITextExtractor

__all__ = [
    "ICacheProvider",
    "ICatalogStore",
    "IChunkStore",
    "ICounterStore",
    "ICourseOutlineStore",
    "IDocumentStore",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IOutlineStore",
    "IProfileStore",
    "IRateLimiter",
    "ITextExtractor",
]
