try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import httpx
import pytest

from assistant.clients.gemini import GeminiClient, GeminiModelError, parse_json_response
from assistant.core.config import GeminiSettings
from assistant.main import app
from assistant.models.session import ErrorKind
from assistant.services.assistant_actions import AssistantActionService, UnknownActionError


class StubGenerator:
    def __init__(self, reply: str = "", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    async def generate_text(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


class BlockedResponse:
    @property
    def text(self) -> str:
        raise ValueError("The response candidate has no parts; finish_reason is SAFETY.")


@pytest.mark.asyncio
async def test_generate_text_maps_blocked_response_to_model_error(monkeypatch) -> None:
    client = GeminiClient(GeminiSettings(GEMINI_API_KEY="test-key"))
    monkeypatch.setattr(client, "_invoke_with_models", lambda **_: BlockedResponse())

    with pytest.raises(GeminiModelError):
        await client.generate_text("Summarize this")


def test_parse_json_response_strips_code_fences() -> None:
    payload = '```json\n{"title": "Lunch", "attendees": ["bob@example.com"]}\n```'

    assert parse_json_response(payload) == {
        "title": "Lunch",
        "attendees": ["bob@example.com"],
    }


def test_parse_json_response_rejects_prose() -> None:
    with pytest.raises(ValueError):
        parse_json_response("Sure! The event is lunch on Friday.")
    with pytest.raises(ValueError):
        parse_json_response("```json\n```")


@pytest.mark.asyncio
async def test_summarize_prompt_includes_content() -> None:
    generator = StubGenerator(reply="Short summary")
    service = AssistantActionService(generator)

    result = await service.run("summarize", "Quarterly numbers are in.")

    assert result.as_payload() == {"summary": "Short summary"}
    assert generator.prompts[0].endswith("Quarterly numbers are in.")


@pytest.mark.asyncio
async def test_parse_event_flags_malformed_model_output() -> None:
    service = AssistantActionService(StubGenerator(reply="not json at all"))

    result = await service.run("parseEvent", "Dinner with Sam on Friday at 7")

    assert result.error is ErrorKind.MALFORMED_RESPONSE
    assert result.raw == "not json at all"


@pytest.mark.asyncio
async def test_unknown_action_raises() -> None:
    service = AssistantActionService(StubGenerator())

    with pytest.raises(UnknownActionError):
        await service.run("translate", "hola")


@pytest.fixture()
def generator_override():
    from assistant import dependencies

    generator = StubGenerator()
    app.dependency_overrides[dependencies.get_assistant_action_service] = (
        lambda: AssistantActionService(generator)
    )
    yield generator
    app.dependency_overrides.clear()


async def _post(payload: dict) -> httpx.Response:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    ) as client:
        return await client.post("/api/gemini", json=payload)


@pytest.mark.anyio
async def test_gemini_endpoint_parses_fenced_event(generator_override):
    generator_override.reply = '```json\n{"title": "Dinner", "date": "2024-05-03"}\n```'

    response = await _post({"action": "parseEvent", "content": "Dinner on Friday"})

    assert response.status_code == 200
    assert response.json() == {"event": {"title": "Dinner", "date": "2024-05-03"}}


@pytest.mark.anyio
async def test_gemini_endpoint_returns_raw_text_on_parse_failure(generator_override):
    generator_override.reply = "I could not find an event."

    response = await _post({"action": "parseEvent", "content": "hello"})

    assert response.status_code == 500
    assert response.json()["detail"]["response"] == "I could not find an event."


@pytest.mark.anyio
async def test_gemini_endpoint_rejects_unknown_action(generator_override):
    response = await _post({"action": "translate", "content": "hola"})

    assert response.status_code == 400
    assert generator_override.prompts == []


@pytest.mark.anyio
async def test_gemini_endpoint_maps_model_errors(generator_override):
    generator_override.error = GeminiModelError("Gemini model 'x' is not available.")

    response = await _post({"action": "chat", "content": "hi"})

    assert response.status_code == 503


@pytest.mark.anyio
async def test_gemini_endpoint_chat(generator_override):
    generator_override.reply = "Hello there!"

    response = await _post({"action": "chat", "content": "hi"})

    assert response.status_code == 200
    assert response.json() == {"response": "Hello there!"}
