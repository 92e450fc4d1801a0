import json
from io import BytesIO

import pytest
from botocore.exceptions import ClientError

from backend.services import bedrock_utils


class FakeBedrockClient:
    def __init__(self, text="[]"):
        self.text = text
        self.calls = []

    def invoke_model(self, **kwargs):
        self.calls.append(kwargs)
        body = {"content": [{"type": "text", "text": self.text}]}
        return {"body": BytesIO(json.dumps(body).encode("utf-8"))}


def test_complete_json_sends_system_prompt_with_messages_api():
    client = FakeBedrockClient('[{"section": "summary", "content": "ok"}]')
    text = bedrock_utils.complete_json("be terse", "Transcript:\n\nhello", temperature=0.2, client=client)

    assert json.loads(text)[0]["section"] == "summary"
    payload = json.loads(client.calls[0]["body"])
    assert client.calls[0]["modelId"] == "anthropic.claude-3-haiku-20240307-v1:0"
    assert payload["system"] == "be terse"
    assert payload["temperature"] == 0.2
    assert payload["messages"][0]["content"][0]["text"].endswith("hello")


def test_complete_json_strips_code_fence():
    client = FakeBedrockClient('```json\n{"tasks": []}\n```')
    assert bedrock_utils.complete_json("sys", "prompt", client=client) == '{"tasks": []}'


def test_complete_json_legacy_completion_model(monkeypatch):
    from backend.config import get_settings

    monkeypatch.setenv("BEDROCK_MODEL_ID", "anthropic.claude-v2")
    get_settings.cache_clear()

    class CompletionClient:
        def __init__(self):
            self.payload = None

        def invoke_model(self, **kwargs):
            self.payload = json.loads(kwargs["body"])
            return {"body": json.dumps({"completion": " [] "}).encode("utf-8")}

    client = CompletionClient()
    assert bedrock_utils.complete_json("sys", "prompt", client=client) == "[]"
    assert client.payload["prompt"].startswith("\n\nHuman: sys")
    assert client.payload["prompt"].endswith("Assistant:")


def test_complete_json_empty_content():
    class EmptyClient:
        def invoke_model(self, **kwargs):
            return {"body": BytesIO(json.dumps({"content": []}).encode("utf-8"))}

    assert bedrock_utils.complete_json("sys", "prompt", client=EmptyClient()) == ""


def test_complete_json_propagates_client_error():
    class ErrorClient:
        def invoke_model(self, **kwargs):
            raise ClientError({"Error": {"Code": "Boom", "Message": "fail"}}, "InvokeModel")

    with pytest.raises(ClientError):
        bedrock_utils.complete_json("sys", "prompt", client=ErrorClient())


def test_complete_json_tolerates_undecodable_body():
    class BinaryClient:
        def invoke_model(self, **kwargs):
            return {"body": BytesIO(b"\xff\xfe\x00broken")}

    assert bedrock_utils.complete_json("sys", "prompt", client=BinaryClient()) == ""
