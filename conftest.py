import pytest

from planforge.config import GeneratorConfig
from planforge.driver.engine import AutomationEngine
from planforge.errors import DriverError


class FakeEngine(AutomationEngine):
    """
    Scripted stand-in for a browser. Every call is recorded as (method, target, *args).
    `failures` maps a method name, or (method, locator name), to how many times it fails.
    """

    def __init__(self, failures=None, fail_start=False, verify_result=True):
        self.calls = []
        self.failures = dict(failures or {})
        self.fail_start = fail_start
        self.verify_result = verify_result
        self.closed = False
        self.on_call = None

    def _call(self, method, locator=None, *args):
        name = locator.name if locator is not None else None
        self.calls.append((method, name) + args)
        if self.on_call:
            self.on_call(method, name)
        for key in ((method, name), method):
            if self.failures.get(key):
                self.failures[key] -= 1
                raise DriverError(DriverError.ELEMENT_NOT_FOUND, f"{method} on {name} failed")

    def start(self, url=None):
        if self.fail_start:
            raise DriverError(DriverError.TIMEOUT, f"timed out opening {url}")
        self.calls.append(("start", url))

    def navigate(self, url):
        self._call("navigate", None, url)

    def fill(self, locator, value):
        self._call("fill", locator, value)

    def click(self, locator):
        self._call("click", locator)

    def select(self, locator, value):
        self._call("select", locator, value)

    def hover(self, locator):
        self._call("hover", locator)

    def drag(self, source, target):
        self._call("drag", source, target.name)

    def upload(self, locator, files):
        self._call("upload", locator, *files)

    def press_key(self, locator, key):
        self._call("press_key", locator, key)

    def handle_dialog(self, action):
        self._call("handle_dialog", None, action)

    def verify_visible(self, locator):
        self._call("verify_visible", locator)
        return self.verify_result

    def verify_text(self, locator, expected):
        self._call("verify_text", locator, expected)
        return self.verify_result

    def verify_value(self, locator, expected):
        self._call("verify_value", locator, expected)
        return self.verify_result

    def wait(self, condition, locator=None):
        self._call("wait", locator, condition)

    def close(self):
        self.closed = True


LOGIN_PLAN = """# Login Plan

## 1. Authentication

### 1.1 Valid Login
1. Navigate to login page
2. Enter valid credentials
3. Click the Login button
4. Verify dashboard is displayed
"""


@pytest.fixture
def login_config():
    return GeneratorConfig(
        base_url="https://the-internet.test",
        test_data={"username": "tomsmith", "password": "SuperSecretPassword!"},
    )


@pytest.fixture
def fake_engine():
    return FakeEngine()
