"""Tests for the Ollama embedding client."""

import json

import httpx
import pytest
import respx

from ravenmind.embeddings.ollama import OllamaEmbedding

HOST = "http://localhost:11434"


@pytest.mark.asyncio
@respx.mock
async def test_embed_single():
    """Test one text is embedded via /api/embeddings."""
    route = respx.post(f"{HOST}/api/embeddings").mock(
        return_value=httpx.Response(200, json={"embedding": [0.1, 0.2, 0.3]})
    )
    client = OllamaEmbedding(model="nomic-embed-text", host=f"{HOST}/")

    embedding = await client.embed_single("hello")

    assert embedding == [0.1, 0.2, 0.3]
    assert json.loads(route.calls.last.request.content) == {"model": "nomic-embed-text", "prompt": "hello"}
    await client.close()


@pytest.mark.asyncio
@respx.mock
async def test_embed_batch():
    """Test a batch is embedded one request per text, in order."""
    route = respx.post(f"{HOST}/api/embeddings").mock(
        side_effect=[
            httpx.Response(200, json={"embedding": [1.0]}),
            httpx.Response(200, json={"embedding": [2.0]}),
        ]
    )
    client = OllamaEmbedding(host=HOST)

    embeddings = await client.embed(["a", "b"])

    assert embeddings == [[1.0], [2.0]]
    assert route.call_count == 2
    await client.close()


@pytest.mark.asyncio
@respx.mock
async def test_client_error_not_retried():
    """Test a 4xx fails immediately."""
    route = respx.post(f"{HOST}/api/embeddings").mock(return_value=httpx.Response(404))
    client = OllamaEmbedding(model="missing-model", host=HOST)

    with pytest.raises(httpx.HTTPStatusError):
        await client.embed_single("hello")

    assert route.call_count == 1
    await client.close()


def test_model_name():
    assert OllamaEmbedding(model="mxbai-embed-large").model_name == "mxbai-embed-large"
