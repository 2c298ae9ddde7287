import os
import sys
from typing import Dict, List, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_BASE_URL = os.getenv("OPENAI_API_BASE_URL", os.getenv("OPENAI_BASE_URL")) # Support both namings
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
PLANFORGE_CONFIG = os.getenv("PLANFORGE_CONFIG", "planforge.yaml")

FoldMode = Literal["none", "existing", "always"]


def check_api_key():
    if not OPENAI_API_KEY:
        print("Error: OPENAI_API_KEY environment variable is not set.")
        print("Please export OPENAI_API_KEY='sk-...' or create a .env file.")
        sys.exit(1)


class PageSettings(BaseModel):
    url: Optional[str] = None
    aliases: List[str] = Field(default_factory=list)


class GeneratorConfig(BaseModel):
    base_url: Optional[str] = None
    pages_dir: str = "pages"
    tests_dir: str = "tests"
    fold_mode: FoldMode = Field("always", description="How multi-action steps fold into page methods: none | existing | always")
    retry_backoff: float = 0.5
    action_timeout_ms: int = 5000
    headless: bool = True
    planner: Literal["rules", "llm"] = "rules"
    default_page: str = "HomePage"
    test_data: Dict[str, str] = Field(default_factory=dict)
    pages: Dict[str, PageSettings] = Field(default_factory=dict)
    seeds: Dict[str, str] = Field(default_factory=dict)

    def page_url(self, page_name: str) -> Optional[str]:
        settings = self.pages.get(page_name)
        if settings and settings.url:
            return self.absolute_url(settings.url)
        return None

    def absolute_url(self, url: str) -> str:
        if url.startswith(("http://", "https://", "file:", "about:")) or not self.base_url:
            return url
        return self.base_url.rstrip("/") + "/" + url.lstrip("/")


def load_config(config_path: Optional[str] = None) -> GeneratorConfig:
    """
    Loads generator settings from YAML. A missing file yields the defaults.
    """
    path = config_path or PLANFORGE_CONFIG
    if not os.path.exists(path):
        return GeneratorConfig()

    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")

    return GeneratorConfig(**data)
