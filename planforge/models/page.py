from typing import Dict, List, Optional
from pydantic import BaseModel, Field

LOCATOR_STRATEGIES = ("role", "label", "placeholder", "text", "testid", "css", "xpath")

class Locator(BaseModel):
    name: str = Field(..., description="Attribute name on the page object, unique within the page")
    strategy: str = Field(..., description="One of: role, label, placeholder, text, testid, css, xpath")
    args: Dict[str, str] = Field(default_factory=dict, description="Strategy arguments, e.g. {'role': 'button', 'name': 'Login'}")

class ActionTemplate(BaseModel):
    kind: str
    locator: Optional[str] = None
    target: Optional[str] = Field(None, description="Second locator, drag only")
    params: List[str] = Field(default_factory=list, description="Method parameters bound positionally to the action's args")

    def signature(self) -> tuple:
        return (self.kind, self.locator, self.target, len(self.params))

class ActionMethod(BaseModel):
    name: str
    params: List[str] = Field(default_factory=list)
    body: List[ActionTemplate]

    def signature(self) -> tuple:
        return tuple(template.signature() for template in self.body)

    @property
    def is_verification(self) -> bool:
        return all(template.kind.startswith("verify") for template in self.body)

class PageObjectDefinition(BaseModel):
    name: str
    url: Optional[str] = None
    locators: List[Locator] = Field(default_factory=list)
    actions: List[ActionMethod] = Field(default_factory=list)

    def locator(self, name: str) -> Optional[Locator]:
        for locator in self.locators:
            if locator.name == name:
                return locator
        return None

    def action(self, name: str) -> Optional[ActionMethod]:
        for method in self.actions:
            if method.name == name:
                return method
        return None

    def method_for(self, signature: tuple) -> Optional[ActionMethod]:
        """Returns the first method whose body performs exactly the given action sequence."""
        for method in self.actions:
            if method.signature() == signature:
                return method
        return None
