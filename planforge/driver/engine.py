from abc import ABC, abstractmethod
from typing import List, Optional

from planforge.models.page import Locator


class AutomationEngine(ABC):
    """
    Browser automation primitives. Implementations raise DriverError for
    timeouts, missing elements and unhandled dialogs; verifications return a bool.
    """

    @abstractmethod
    def start(self, url: Optional[str] = None):
        """Opens a fresh browser context, optionally at `url`."""
        pass

    @abstractmethod
    def navigate(self, url: str):
        pass

    @abstractmethod
    def fill(self, locator: Locator, value: str):
        pass

    @abstractmethod
    def click(self, locator: Locator):
        pass

    @abstractmethod
    def select(self, locator: Locator, value: str):
        pass

    @abstractmethod
    def hover(self, locator: Locator):
        pass

    @abstractmethod
    def drag(self, source: Locator, target: Locator):
        pass

    @abstractmethod
    def upload(self, locator: Locator, files: List[str]):
        pass

    @abstractmethod
    def press_key(self, locator: Optional[Locator], key: str):
        pass

    @abstractmethod
    def handle_dialog(self, action: str):
        """Arms a handler for the next dialog; `action` is 'accept' or 'dismiss'."""
        pass

    @abstractmethod
    def verify_visible(self, locator: Locator) -> bool:
        pass

    @abstractmethod
    def verify_text(self, locator: Locator, expected: str) -> bool:
        pass

    @abstractmethod
    def verify_value(self, locator: Locator, expected: str) -> bool:
        pass

    @abstractmethod
    def wait(self, condition: str, locator: Optional[Locator] = None):
        """Waits for `locator` when given, otherwise for `condition` milliseconds."""
        pass

    @abstractmethod
    def close(self):
        pass
