"""
ReachInbox - Error Taxonomy
============================
Every failure of the suggested-reply pipeline surfaces as a subclass of
``RAGPipelineError`` with the originating exception chained as
``__cause__``.  The HTTP layer uses the concrete type to pick a status
code: ``EmptyKnowledgeBaseError`` is operator-actionable (seed the
knowledge base), everything else is a generic failure.
"""


class RAGPipelineError(Exception):
    """Base class for suggested-reply pipeline failures."""


class EmbeddingError(RAGPipelineError):
    """The embedding provider was unreachable or returned an invalid vector."""


class ContextRetrievalError(RAGPipelineError):
    """The vector index query failed for a reason other than a missing collection."""


class EmptyKnowledgeBaseError(RAGPipelineError):
    """No knowledge snippets were retrieved, usually because the collection is not seeded."""


class ReplyGenerationError(RAGPipelineError):
    """The generative model call failed or produced no usable text."""


class PipelineCancelledError(RAGPipelineError):
    """The caller cancelled the pipeline between two steps."""


class CollectionNotFoundError(Exception):
    """
    Raised by vector index adapters when the requested collection does
    not exist.  The retriever turns this into an empty result; it never
    reaches pipeline callers.
    """

    def __init__(self, collection: str) -> None:
        super().__init__(f"Collection '{collection}' not found")
        self.collection = collection


class CategorizationError(Exception):
    """The email categorizer exhausted its attempts without a model response."""
