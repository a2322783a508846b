# Models package
# Ensure all model modules are imported so that SQLAlchemy can resolve string-based relationships
from knowledge_rag.models.user import User  # noqa: F401
from knowledge_rag.models.organization import Organization, OrganizationMember  # noqa: F401
from knowledge_rag.models.knowledge_base import KnowledgeBase  # noqa: F401
from knowledge_rag.models.document import Document  # noqa: F401
from knowledge_rag.models.chunk import DocumentChunk  # noqa: F401
from knowledge_rag.models.usage import EmbeddingUsageLog  # noqa: F401
