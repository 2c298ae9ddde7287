import io
import json

from planforge.providers import api
from planforge.providers.api import APIProvider, FileProvider


class FakeResponse(io.BytesIO):
    def __init__(self, body, content_type):
        super().__init__(body.encode("utf-8"))
        self.status = 200
        self.headers = {"Content-Type": content_type}


def test_file_provider(tmp_path):
    path = tmp_path / "plan.md"
    path.write_text("## 1. Group\n", encoding="utf-8")
    assert FileProvider(str(path)).get_plan() == "## 1. Group\n"


def test_api_provider_json_body(monkeypatch):
    body = json.dumps({"plan": "## 1. Group\n"})
    monkeypatch.setattr(api.urllib.request, "urlopen", lambda url, timeout: FakeResponse(body, "application/json"))
    assert APIProvider("https://plans.test/1").get_plan() == "## 1. Group\n"


def test_api_provider_markdown_body(monkeypatch):
    monkeypatch.setattr(api.urllib.request, "urlopen", lambda url, timeout: FakeResponse("# Plan\n", "text/markdown"))
    assert APIProvider("https://plans.test/1").get_plan() == "# Plan\n"
