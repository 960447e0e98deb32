"""Persistent memory: conversation log, facts, embeddings and retrieval."""

from .conversation import ConversationStore, estimate_tokens
from .database import Database
from .embeddings import (
    EmbeddingCache,
    EmbeddingProvider,
    EmbeddingQueue,
    OpenAIEmbeddingProvider,
    cosine_similarity,
    deserialize_embedding,
    serialize_embedding,
)
from .facts import FactStore, LexicalIndex
from .graph import GraphBuilder
from .jobs import JobStore
from .manager import MemoryManager
from .models import (
    Chunk,
    ConversationContext,
    Fact,
    GraphData,
    GraphLink,
    GraphNode,
    Job,
    MemoryStats,
    Message,
    Role,
    SearchResult,
    Summary,
)
from .prompt import build_context_messages, build_system_prompt
from .retrieval import HybridRetriever
from .summarizer import GroqSummarizer, SummarizationPipeline, Summarizer, create_basic_summary
from .tools import (
    ForgetTool,
    ListFactsTool,
    MemorySearchTool,
    RememberTool,
    create_memory_tools,
)

__all__ = [
    "Chunk",
    "ConversationContext",
    "ConversationStore",
    "Database",
    "EmbeddingCache",
    "EmbeddingProvider",
    "EmbeddingQueue",
    "Fact",
    "FactStore",
    "ForgetTool",
    "GraphBuilder",
    "GraphData",
    "GraphLink",
    "GraphNode",
    "GroqSummarizer",
    "HybridRetriever",
    "Job",
    "JobStore",
    "LexicalIndex",
    "ListFactsTool",
    "MemoryManager",
    "MemorySearchTool",
    "MemoryStats",
    "Message",
    "OpenAIEmbeddingProvider",
    "RememberTool",
    "Role",
    "SearchResult",
    "SummarizationPipeline",
    "Summarizer",
    "Summary",
    "build_context_messages",
    "build_system_prompt",
    "cosine_similarity",
    "create_basic_summary",
    "create_memory_tools",
    "deserialize_embedding",
    "estimate_tokens",
    "serialize_embedding",
]
