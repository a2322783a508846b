"""
Embedding Service
通过 Ollama /api/embed 批量生成文本向量
"""

from typing import List, Optional, Sequence, Tuple

import requests

from knowledge_rag.config.settings import settings
from knowledge_rag.core.logging import logger
from knowledge_rag.core.exceptions import CustomException, ErrorCode
from knowledge_rag.services.chunking_service import count_tokens


class EmbeddingService:
    """向量服务：一次调用批量生成向量，并返回消耗的 token 数"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        dimension: Optional[int] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or settings.OLLAMA_BASE_URL).rstrip("/")
        self.model = model or settings.OLLAMA_EMBEDDING_MODEL
        self.dimension = settings.EMBEDDING_DIMENSION if dimension is None else dimension
        self.timeout = timeout or settings.OLLAMA_TIMEOUT
        self.http = session or requests.Session()

    def embed(self, texts: Sequence[str]) -> Tuple[List[List[float]], int]:
        """
        批量生成向量

        Returns:
            (与输入顺序一一对应的向量列表, 总 token 数)；空输入返回 ([], 0)
        """
        if not texts:
            return [], 0

        logger.debug(f"开始生成向量: model={self.model}, 文本数={len(texts)}")
        try:
            response = self.http.post(
                f"{self.base_url}/api/embed",
                json={"model": self.model, "input": list(texts)},
                timeout=self.timeout,
            )
            response.raise_for_status()
            result = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Ollama 向量生成失败: {e}")
            raise CustomException(
                code=ErrorCode.VECTOR_GENERATION_FAILED,
                message=f"向量生成失败: {e}",
            )

        embeddings = result.get("embeddings") or []
        if len(embeddings) != len(texts):
            raise CustomException(
                code=ErrorCode.VECTOR_GENERATION_FAILED,
                message=f"向量数量不匹配: 期望 {len(texts)}，实际 {len(embeddings)}",
            )

        vectors = []
        for embedding in embeddings:
            vector = [float(x) for x in embedding]
            if self.dimension and len(vector) != self.dimension:
                raise CustomException(
                    code=ErrorCode.VECTOR_GENERATION_FAILED,
                    message=f"向量维度不匹配: 期望 {self.dimension}，实际 {len(vector)}",
                )
            vectors.append(vector)

        total_tokens = result.get("prompt_eval_count")
        if total_tokens is None:
            # 旧版本 Ollama 不返回用量，按分词器估算
            total_tokens = sum(count_tokens(text) for text in texts)

        logger.info(f"向量生成完成: 数量={len(vectors)}, tokens={total_tokens}")
        return vectors, int(total_tokens)

    def embed_query(self, text: str) -> Tuple[List[float], int]:
        """生成单条查询向量"""
        vectors, tokens = self.embed([text])
        return vectors[0], tokens
