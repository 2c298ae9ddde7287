from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

class Step(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., description="1-based ordinal of the step inside its scenario")
    text: str = Field(..., description="Free-text intent, e.g. 'Click login button'")
    expected: List[str] = Field(default_factory=list, description="Nested expectation bullets, kept for the step comment")

class Scenario(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    ordinal: str = Field(..., description="Plan numbering, e.g. '1.2'")
    group: str
    steps: List[Step]
    seed: Optional[str] = Field(None, description="Name of a pre-existing setup script")
    pages: List[str] = Field(default_factory=list, description="Page names declared by the plan, in order")

    @property
    def qualified_name(self) -> str:
        return f"{self.group}/{self.name}"

class TestGroup(BaseModel):
    __test__ = False
    model_config = ConfigDict(frozen=True)

    name: str
    ordinal: str
    scenarios: List[Scenario]

class TestPlan(BaseModel):
    __test__ = False
    model_config = ConfigDict(frozen=True)

    title: Optional[str] = None
    groups: List[TestGroup]

    def scenarios(self) -> List[Scenario]:
        return [scenario for group in self.groups for scenario in group.scenarios]
