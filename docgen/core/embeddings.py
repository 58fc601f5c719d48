"""OpenAI embeddings generation with validation."""

import asyncio

from openai import OpenAI

from docgen.core.cache import EmbeddingCache
from docgen.core.config import get_settings
from docgen.core.logging import get_logger

logger = get_logger(__name__)


def _get_client() -> OpenAI:
    """Get OpenAI client instance."""
    settings = get_settings()
    if not settings.OPENAI_API_KEY:
        raise RuntimeError("OPENAI_API_KEY is not configured; embeddings are unavailable")
    return OpenAI(api_key=settings.OPENAI_API_KEY)


def embed_texts(texts: list[str]) -> list[list[float]]:
    """
    Generate embeddings for a list of texts using OpenAI.

    Args:
        texts: List of text strings to embed

    Returns:
        List of embedding vectors (each vector is list of floats)

    Raises:
        ValueError: If embedding dimension doesn't match expected EMBEDDING_DIM
        Exception: If OpenAI API call fails
    """
    if not texts:
        return []

    settings = get_settings()
    client = _get_client()

    try:
        response = client.embeddings.create(
            model=settings.EMBEDDING_MODEL,
            input=texts,
        )

        embeddings = []
        for i, embedding_obj in enumerate(response.data):
            embedding = embedding_obj.embedding

            if len(embedding) != settings.EMBEDDING_DIM:
                raise ValueError(
                    f"Embedding dimension mismatch for text {i}: "
                    f"expected {settings.EMBEDDING_DIM}, got {len(embedding)}"
                )

            embeddings.append(embedding)

        logger.debug(f"Generated {len(embeddings)} embeddings using {settings.EMBEDDING_MODEL}")

        return embeddings

    except Exception as e:
        logger.error(f"Failed to generate embeddings: {e}")
        raise


async def embed_texts_async(texts: list[str]) -> list[list[float]]:
    """Async wrapper around embed_texts using thread pool."""
    return await asyncio.to_thread(embed_texts, texts)


async def embed_text_cached(text: str, cache: EmbeddingCache | None = None, embed_fn=None) -> list[float]:
    """
    Embed one text, consulting the embedding cache first.

    Args:
        text: Text to embed
        cache: Embedding cache tier (skipped when None)
        embed_fn: Async batch embedder, defaults to embed_texts_async

    Returns:
        Embedding vector
    """
    if cache is not None:
        cached = cache.get_for_text(text)
        if cached is not None:
            return cached

    embed_fn = embed_fn or embed_texts_async
    vectors = await embed_fn([text])
    if not vectors:
        raise ValueError("Embedder returned no vectors")

    embedding = vectors[0]
    if cache is not None:
        cache.set_for_text(text, embedding)
    return embedding
