import asyncio
from types import SimpleNamespace

import pytest

from problem_api.config import Settings
from problem_api.llm import AiResponseError, OpenAICompleter, build_completer, parse_json_array


@pytest.mark.parametrize(
    "content,expected",
    [
        ('[{"a": 1}]', [{"a": 1}]),
        ("[]", []),
        ('```json\n[{"a": 1}]\n```', [{"a": 1}]),
        ('Here you go: [1, 2] hope it helps', [1, 2]),
    ],
)
def test_parse_json_array_accepts(content, expected):
    assert parse_json_array(content) == expected


@pytest.mark.parametrize(
    "content",
    ["", "   ", '{"a": 1}', "no array here", "[1, 2,", '["a" "b"]'],
)
def test_parse_json_array_rejects(content):
    with pytest.raises(AiResponseError):
        parse_json_array(content)


class FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        choices = [] if self.content is None else [SimpleNamespace(message=SimpleNamespace(content=self.content))]
        return SimpleNamespace(choices=choices)


def _fake_client(content):
    completions = FakeCompletions(content)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def test_completer_sends_system_and_user_messages():
    client, completions = _fake_client("[]")
    completer = OpenAICompleter("sk", model="m-1", temperature=0.2, max_tokens=900, client=client)

    out = asyncio.run(completer.complete("find problems", system="be strict", max_tokens=1500))

    assert out == "[]"
    assert completions.kwargs["model"] == "m-1"
    assert completions.kwargs["temperature"] == 0.2
    assert completions.kwargs["max_tokens"] == 1500
    assert completions.kwargs["messages"] == [
        {"role": "system", "content": "be strict"},
        {"role": "user", "content": "find problems"},
    ]


def test_completer_defaults_and_empty_choices():
    client, completions = _fake_client(None)
    completer = OpenAICompleter("sk", max_tokens=900, client=client)

    assert asyncio.run(completer.complete("hi")) == ""
    assert completions.kwargs["max_tokens"] == 900
    assert completions.kwargs["messages"] == [{"role": "user", "content": "hi"}]


def test_build_completer_requires_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    assert build_completer(Settings.from_env()) is None
