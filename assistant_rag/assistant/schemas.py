"""Request options and response schema for the assistant answer pipeline."""

from pydantic import BaseModel, Field

from assistant_rag.rag.types import KnowledgeDocument
from assistant_rag.routes.recommendations import RouteRecommendation


class RagOptions(BaseModel):
    """How (and whether) to ground an answer in the knowledge base."""

    enable_rag: bool = Field(False, description="Enhance the last user message with retrieved context")
    category: str | None = Field(None, description="Current page; filters retrieval and targets the prompt")
    min_similarity: float | None = Field(
        None,
        ge=-1.0,
        le=1.0,
        description="Similarity threshold; falls back to RAG_ASSISTANT_MIN_SIMILARITY",
    )
    limit: int | None = Field(
        None,
        gt=0,
        description="Maximum number of knowledge snippets; falls back to RAG_CONTEXT_LIMIT",
    )


class AssistantResponse(BaseModel):
    """Answer returned to callers of the assistant."""

    success: bool = Field(True, description="Always True; failures raise instead")
    content: str = Field(..., description="Answer text with internal links rendered as route-link tags")
    model: str = Field(..., description="Static label of the highest-priority configured provider")
    provider: str = Field(..., description="Provider that actually produced the answer")
    sources: list[KnowledgeDocument] = Field(default_factory=list, description="Documents used as context")
    route_recommendations: list[RouteRecommendation] = Field(
        default_factory=list,
        description="Validated internal links found in the answer",
    )
