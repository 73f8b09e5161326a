"""Sessions API integration tests (offline backend)."""

import json

import pytest


async def _create(client) -> dict:
    resp = await client.post("/sessions")
    assert resp.status_code == 200
    return resp.json()


def _find_by_name(node: dict, name: str) -> dict | None:
    if node["name"] == name:
        return node
    for child in node.get("children") or []:
        found = _find_by_name(child, name)
        if found is not None:
            return found
    return None


class TestSessionLifecycle:
    @pytest.mark.asyncio
    async def test_create_list_get_delete(self, api_client):
        session = await _create(api_client)
        assert session["title"] == "新对话 (New Chat)"
        assert session["data"]["current_step"] == "init"

        listed = (await api_client.get("/sessions")).json()
        assert session["id"] in [s["id"] for s in listed]

        assert (await api_client.get(f"/sessions/{session['id']}")).status_code == 200
        assert (await api_client.delete(f"/sessions/{session['id']}")).json() == {"ok": True}
        assert (await api_client.get(f"/sessions/{session['id']}")).status_code == 404
        assert (await api_client.delete(f"/sessions/{session['id']}")).status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_session_turns_are_404(self, api_client):
        resp = await api_client.post("/sessions/nope/messages", json={"text": "hi"})
        assert resp.status_code == 404
        resp = await api_client.post("/sessions/nope/actions", json={"operation_id": "run_tech"})
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self, api_client):
        session = await _create(api_client)
        resp = await api_client.post(f"/sessions/{session['id']}/messages", json={"text": "   "})
        assert resp.status_code == 422


class TestWorkflowOverHttp:
    @pytest.mark.asyncio
    async def test_message_options_spec_checklist(self, api_client):
        session_id = (await _create(api_client))["id"]

        outcome = (await api_client.post(f"/sessions/{session_id}/messages", json={"text": "我想做一个记账应用"})).json()
        assert outcome["applied"] is True
        assert outcome["state"]["clarification_round"] == 1

        for _ in range(2):
            option = outcome["result"]["messages"][-1]["actions"][1]
            outcome = (
                await api_client.post(
                    f"/sessions/{session_id}/actions",
                    json={"operation_id": option["operation_id"], "label": option["label"]},
                )
            ).json()
            assert outcome["applied"] is True

        state = outcome["state"]
        assert state["current_step"] == "spec_generated"
        assert state["completed_steps"] == ["specify"]
        assert _find_by_name(state["files"], "spec.md") is not None

        outcome = (
            await api_client.post(
                f"/sessions/{session_id}/actions",
                json={"operation_id": "run_checklist", "label": "运行质量检查 (Checklist)"},
            )
        ).json()
        state = outcome["state"]
        assert state["current_step"] == "checklist"
        assert _find_by_name(state["files"], "checklist.md")["id"] == state["active_file_id"]
        assert state["chat_history"][-2]["content"] == "✅ 运行质量检查 (Checklist)"

    @pytest.mark.asyncio
    async def test_stream_message(self, api_client):
        session_id = (await _create(api_client))["id"]

        resp = await api_client.post(f"/sessions/{session_id}/messages/stream", json={"text": "需求"})

        assert resp.status_code == 200
        events = [line[len("event: "):].strip() for line in resp.text.splitlines() if line.startswith("event: ")]
        assert events[0] == "progress"
        assert events[-1] == "done"
        data_lines = [line[len("data: "):] for line in resp.text.splitlines() if line.startswith("data: ")]
        assert json.loads(data_lines[-1])["applied"] is True

    @pytest.mark.asyncio
    async def test_stop_when_idle(self, api_client):
        session_id = (await _create(api_client))["id"]
        resp = await api_client.post(f"/sessions/{session_id}/stop")
        assert resp.json() == {"stopped": False}


class TestProjectFilesOverHttp:
    async def _session_with_spec(self, client) -> tuple[str, dict]:
        session_id = (await _create(client))["id"]
        outcome = (
            await client.post(
                f"/sessions/{session_id}/actions",
                json={"operation_id": "regenerate_spec", "label": "重新生成"},
            )
        ).json()
        specs = next(c for c in outcome["state"]["files"]["children"] if c["name"] == "specs")
        return session_id, specs

    @pytest.mark.asyncio
    async def test_patch_select_delete(self, api_client):
        session_id, specs = await self._session_with_spec(api_client)
        file_id = specs["children"][0]["id"]

        resp = await api_client.patch(f"/sessions/{session_id}/files/{file_id}", json={"content": "# Edited"})
        assert resp.status_code == 200
        assert _find_by_name(resp.json()["files"], specs["children"][0]["name"])["content"] == "# Edited"

        resp = await api_client.put(f"/sessions/{session_id}/active-file", json={"node_id": None})
        assert resp.json()["active_file_id"] is None

        resp = await api_client.delete(f"/sessions/{session_id}/files/{specs['id']}")
        assert resp.status_code == 200
        assert resp.json()["files"]["children"] == []

    @pytest.mark.asyncio
    async def test_missing_file_is_404(self, api_client):
        session_id, _ = await self._session_with_spec(api_client)
        resp = await api_client.patch(f"/sessions/{session_id}/files/missing", json={"name": "x.md"})
        assert resp.status_code == 404
        resp = await api_client.delete(f"/sessions/{session_id}/files/root")
        assert resp.status_code == 404
