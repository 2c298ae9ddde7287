import json
import urllib.request
from planforge.providers.base import PlanProvider

class APIProvider(PlanProvider):
    """Fetches a plan from an HTTP endpoint returning markdown or {"plan": "..."} JSON."""

    def __init__(self, api_url: str, timeout: float = 30.0):
        self.api_url = api_url
        self.timeout = timeout

    def get_plan(self) -> str:
        try:
            print(f"Fetching plan from {self.api_url}...")
            with urllib.request.urlopen(self.api_url, timeout=self.timeout) as response:
                if response.status != 200:
                    raise Exception(f"HTTP Error {response.status}")

                body = response.read().decode('utf-8')
                content_type = response.headers.get("Content-Type", "")

        except Exception as e:
            print(f"Error fetching from API: {e}")
            raise e

        if "json" in content_type:
            data = json.loads(body)
            # Accept {"plan": ...} or {"content": ...}
            if isinstance(data, dict):
                return data.get("plan") or data.get("content") or ""
            return ""
        return body

class FileProvider(PlanProvider):
    def __init__(self, path: str):
        self.path = path

    def get_plan(self) -> str:
        with open(self.path, 'r', encoding='utf-8') as f:
            return f.read()
