import logging
from typing import List, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import expect, sync_playwright

from planforge.driver.engine import AutomationEngine
from planforge.driver.selectors import locate
from planforge.errors import DriverError
from planforge.models.page import Locator

logger = logging.getLogger(__name__)


class PlaywrightEngine(AutomationEngine):
    def __init__(self, headless: bool = True, timeout_ms: int = 5000,
                 storage_state: Optional[str] = None, ignore_https_errors: bool = False):
        self.headless = headless
        self.timeout_ms = timeout_ms
        self.storage_state = storage_state
        self.ignore_https_errors = ignore_https_errors
        self._playwright = None
        self._browser = None
        self._context = None
        self.page = None
        self._dialog_action: Optional[str] = None
        self._unhandled_dialog: Optional[str] = None

    def start(self, url: Optional[str] = None):
        if self._playwright is None:
            self._playwright = sync_playwright().start()
            launch_args = []
            if self.ignore_https_errors:
                launch_args.append('--ignore-certificate-errors')
            self._browser = self._playwright.chromium.launch(headless=self.headless, args=launch_args)

        context_options = {}
        if self.storage_state:
            context_options['storage_state'] = self.storage_state
        if self.ignore_https_errors:
            context_options['ignore_https_errors'] = True

        if self._context is not None:
            self._context.close()
        self._context = self._browser.new_context(**context_options)
        self._context.set_default_timeout(self.timeout_ms)
        self.page = self._context.new_page()
        self.page.on("dialog", self._on_dialog)

        if url:
            self.navigate(url)

    def _on_dialog(self, dialog):
        if self._dialog_action:
            action, self._dialog_action = self._dialog_action, None
            getattr(dialog, action)()
        else:
            self._unhandled_dialog = dialog.message
            dialog.dismiss()

    def _check_dialog(self):
        if self._unhandled_dialog is not None:
            message, self._unhandled_dialog = self._unhandled_dialog, None
            raise DriverError(DriverError.DIALOG_UNHANDLED, f"unexpected dialog: {message}")

    def _find(self, locator: Locator):
        self._check_dialog()
        element = locate(self.page, locator)
        try:
            element.first.wait_for(state="attached", timeout=self.timeout_ms)
        except PlaywrightTimeoutError as e:
            raise DriverError(DriverError.ELEMENT_NOT_FOUND, f"'{locator.name}' not found") from e
        return element

    def _run(self, description: str, fn):
        try:
            return fn()
        except DriverError:
            raise
        except PlaywrightTimeoutError as e:
            raise DriverError(DriverError.TIMEOUT, f"{description} timed out") from e
        except PlaywrightError as e:
            raise DriverError(DriverError.ELEMENT_NOT_FOUND, f"{description} failed: {e.message}") from e

    def navigate(self, url: str):
        self._check_dialog()
        logger.debug("Navigating to %s", url)
        self._run(f"goto {url}", lambda: self.page.goto(url))
        self._run("load", lambda: self.page.wait_for_load_state("networkidle"))

    def fill(self, locator: Locator, value: str):
        self._run(f"fill {locator.name}", lambda: self._find(locator).fill(value))

    def click(self, locator: Locator):
        self._run(f"click {locator.name}", lambda: self._find(locator).click())

    def select(self, locator: Locator, value: str):
        self._run(f"select {locator.name}", lambda: self._find(locator).select_option(value))

    def hover(self, locator: Locator):
        self._run(f"hover {locator.name}", lambda: self._find(locator).hover())

    def drag(self, source: Locator, target: Locator):
        self._run(f"drag {source.name}", lambda: self._find(source).drag_to(self._find(target)))

    def upload(self, locator: Locator, files: List[str]):
        self._run(f"upload {locator.name}", lambda: self._find(locator).set_input_files(files))

    def press_key(self, locator: Optional[Locator], key: str):
        if locator is not None:
            self._run(f"press {key}", lambda: self._find(locator).press(key))
        else:
            self._check_dialog()
            self._run(f"press {key}", lambda: self.page.keyboard.press(key))

    def handle_dialog(self, action: str):
        if action not in ("accept", "dismiss"):
            raise ValueError(f"dialog action must be 'accept' or 'dismiss', got '{action}'")
        self._dialog_action = action

    def _expect(self, check) -> bool:
        try:
            check()
            return True
        except AssertionError:
            return False

    def verify_visible(self, locator: Locator) -> bool:
        element = self._find(locator)
        return self._expect(lambda: expect(element).to_be_visible(timeout=self.timeout_ms))

    def verify_text(self, locator: Locator, expected: str) -> bool:
        element = self._find(locator)
        return self._expect(lambda: expect(element).to_contain_text(expected, timeout=self.timeout_ms))

    def verify_value(self, locator: Locator, expected: str) -> bool:
        element = self._find(locator)
        return self._expect(lambda: expect(element).to_have_value(expected, timeout=self.timeout_ms))

    def wait(self, condition: str, locator: Optional[Locator] = None):
        if locator is not None:
            self._run(f"wait for {locator.name}", lambda: self._find(locator).first.wait_for())
        else:
            self._check_dialog()
            self.page.wait_for_timeout(int(condition))

    def close(self):
        if self._browser is not None:
            self._browser.close()
        if self._playwright is not None:
            self._playwright.stop()
        self._playwright = self._browser = self._context = self.page = None
