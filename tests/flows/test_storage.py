"""Tests for flow persistence."""

import json

import pytest

from flowreplay.flows.models import Flow, KeyboardStep, NavigateStep
from flowreplay.flows.storage import (
    FLOW_KEY,
    FlowStore,
    JsonFileStorageAdapter,
    MemoryStorageAdapter,
)


class TestFlowStore:
    """Tests for FlowStore over the in-memory adapter."""

    @pytest.mark.asyncio
    async def test_empty_store_returns_new_flow(self):
        flow = await FlowStore().get_flow()

        assert flow.title == "New Flow"
        assert flow.steps == []

    @pytest.mark.asyncio
    async def test_save_and_get(self):
        store = FlowStore(MemoryStorageAdapter())
        flow = Flow.new("Checkout").with_step(NavigateStep(url="https://example.com"))

        await store.save_flow(flow)

        assert await store.get_flow() == flow
        assert (await store.adapter.get(FLOW_KEY))["title"] == "Checkout"

    @pytest.mark.asyncio
    async def test_append_and_remove_last(self):
        store = FlowStore()

        await store.append_step(KeyboardStep(key="a"))
        flow = await store.append_step(KeyboardStep(key="b"))
        assert [step.key for step in flow.steps] == ["a", "b"]

        flow = await store.remove_last_step()
        assert [step.key for step in flow.steps] == ["a"]
        assert len((await store.get_flow()).steps) == 1

    @pytest.mark.asyncio
    async def test_remove_last_on_empty_flow(self):
        flow = await FlowStore().remove_last_step()

        assert flow.steps == []

    @pytest.mark.asyncio
    async def test_clear(self):
        store = FlowStore()
        await store.save_flow(Flow.new("Old"))

        await store.clear_flow()

        assert (await store.get_flow()).title == "New Flow"


class TestJsonFileStorageAdapter:
    """Tests for the JSON file adapter."""

    @pytest.mark.asyncio
    async def test_missing_file_reads_none(self, tmp_path):
        adapter = JsonFileStorageAdapter(tmp_path / "missing.json")

        assert await adapter.get(FLOW_KEY) is None

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "nested" / "flow.json"
        flow = Flow.new("Persisted")

        await FlowStore(JsonFileStorageAdapter(path)).save_flow(flow)
        loaded = await FlowStore(JsonFileStorageAdapter(path)).get_flow()

        assert loaded == flow
        assert json.loads(path.read_text(encoding="utf-8"))["flow"]["id"] == flow.id

    @pytest.mark.asyncio
    async def test_remove(self, tmp_path):
        adapter = JsonFileStorageAdapter(tmp_path / "flow.json")
        await adapter.set("a", 1)
        await adapter.set("b", 2)

        await adapter.remove("a")
        await adapter.remove("missing")

        assert await adapter.get("a") is None
        assert await adapter.get("b") == 2
