import asyncio

import pytest

from backend.core.handoff.errors import UpstreamStreamFailure
from backend.core.llm import OllamaCloudLLM


class FakeChatClient:
    def __init__(self, chunks):
        self.chunks = chunks

    async def chat(self, model, messages, stream=False, options=None):
        if not stream:
            return self.chunks[0]

        async def gen():
            for chunk in self.chunks:
                yield chunk
        return gen()


def make_llm(chunks):
    llm = OllamaCloudLLM(model_name="test-model", host="http://localhost:11434", api_key="k")
    llm.client = FakeChatClient(chunks)
    return llm


def test_stream_reply_yields_content():
    llm = make_llm([{"message": {"content": "Mer"}}, {"message": {"content": ""}}, {"message": {"content": "haba"}}])

    async def run():
        return [piece async for piece in llm.stream_reply([{"role": "user", "content": "x"}])]

    assert asyncio.run(run()) == ["Mer", "haba"]


def test_malformed_chunk_becomes_upstream_failure():
    llm = make_llm([{"message": {"content": "Mer"}}, {"done": True}])

    async def run():
        return [piece async for piece in llm.stream_reply([{"role": "user", "content": "x"}])]

    with pytest.raises(UpstreamStreamFailure):
        asyncio.run(run())


def test_malformed_reply_becomes_upstream_failure():
    llm = make_llm([{"message": None}])
    with pytest.raises(UpstreamStreamFailure):
        asyncio.run(llm.reply([{"role": "user", "content": "x"}]))
