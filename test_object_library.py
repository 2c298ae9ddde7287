import json
import threading

import pytest

from planforge.errors import ConflictError, PersistenceError
from planforge.library.repository import ObjectLibrary
from planforge.library.store import FileStore
from planforge.models.page import ActionMethod, ActionTemplate, Locator

LOGIN_BUTTON = Locator(name="login_button", strategy="role", args={"role": "button", "name": "Login"})
USERNAME = Locator(name="username_field", strategy="label", args={"text": "Username"})
CLICK_LOGIN = ActionMethod(
    name="click_login_button",
    body=[ActionTemplate(kind="click", locator="login_button")],
)
FILL_USERNAME = ActionMethod(
    name="fill_username",
    params=["username"],
    body=[ActionTemplate(kind="fill", locator="username_field", params=["username"])],
)


@pytest.fixture
def library(tmp_path):
    return ObjectLibrary(FileStore(str(tmp_path)), "pages")


def _saved(tmp_path, page="LoginPage"):
    return json.loads((tmp_path / "pages" / f"{page}.json").read_text(encoding="utf-8"))


def test_missing_page_resolves_empty(library):
    pages = library.resolve(["LoginPage"])
    assert pages["LoginPage"].locators == []
    assert pages["LoginPage"].actions == []


def test_extend_and_persist_writes_json_and_module(library, tmp_path):
    library.extend("LoginPage", [LOGIN_BUTTON], [CLICK_LOGIN], url="https://app.test/login")
    library.persist()

    data = _saved(tmp_path)
    assert data["url"] == "https://app.test/login"
    assert [l["name"] for l in data["locators"]] == ["login_button"]
    module = (tmp_path / "pages" / "login_page.py").read_text(encoding="utf-8")
    assert "class LoginPage:" in module
    assert "self.login_button = page.get_by_role('button', name='Login')" in module
    assert "def click_login_button(self):" in module
    assert library.discover() == ["LoginPage"]


def test_extend_is_idempotent(library, tmp_path):
    library.extend("LoginPage", [LOGIN_BUTTON], [CLICK_LOGIN])
    library.persist()
    before = (tmp_path / "pages" / "LoginPage.json").read_text(encoding="utf-8")

    library.extend("LoginPage", [LOGIN_BUTTON], [CLICK_LOGIN])
    library.persist()
    assert (tmp_path / "pages" / "LoginPage.json").read_text(encoding="utf-8") == before


def test_extend_never_removes_entries(library):
    library.extend("LoginPage", [LOGIN_BUTTON], [CLICK_LOGIN])
    merged = library.extend("LoginPage", [USERNAME], [FILL_USERNAME])
    assert [l.name for l in merged.locators] == ["login_button", "username_field"]
    assert [m.name for m in merged.actions] == ["click_login_button", "fill_username"]


def test_conflicting_locator_raises_and_changes_nothing(library):
    library.extend("LoginPage", [LOGIN_BUTTON], [CLICK_LOGIN])
    changed = Locator(name="login_button", strategy="text", args={"text": "Sign in"})
    with pytest.raises(ConflictError) as exc:
        library.extend("LoginPage", [USERNAME, changed], [])
    assert exc.value.name == "login_button"
    assert [l.name for l in library.get("LoginPage").locators] == ["login_button"]


def test_reloaded_library_sees_persisted_entries(library, tmp_path):
    library.extend("LoginPage", [USERNAME], [FILL_USERNAME])
    library.persist()

    fresh = ObjectLibrary(FileStore(str(tmp_path)), "pages")
    definition = fresh.resolve(["LoginPage"])["LoginPage"]
    assert definition.action("fill_username").params == ["username"]


def test_stale_write_is_rejected(library, tmp_path):
    library.extend("LoginPage", [LOGIN_BUTTON], [CLICK_LOGIN])
    library.persist()

    other = ObjectLibrary(FileStore(str(tmp_path)), "pages")
    other.extend("LoginPage", [USERNAME], [FILL_USERNAME])
    other.persist()

    library.extend("LoginPage", [USERNAME], [])
    with pytest.raises(PersistenceError):
        library.persist()

    library.resolve(["LoginPage"], reload=True)
    assert library.get("LoginPage").action("fill_username") is not None


def test_invalid_json_is_a_persistence_error(library, tmp_path):
    (tmp_path / "pages").mkdir()
    (tmp_path / "pages" / "LoginPage.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(PersistenceError):
        library.resolve(["LoginPage"])


def test_transaction_rolls_back_on_error(library, tmp_path):
    library.extend("LoginPage", [LOGIN_BUTTON], [CLICK_LOGIN])
    library.persist()

    with pytest.raises(RuntimeError):
        with library.transaction(["LoginPage"]) as tx:
            tx.extend("LoginPage", [USERNAME], [FILL_USERNAME])
            raise RuntimeError("boom")

    assert library.get("LoginPage").locator("username_field") is None
    library.persist()
    assert [l["name"] for l in _saved(tmp_path)["locators"]] == ["login_button"]


def test_concurrent_conflicting_extensions(library):
    """Exactly one of two conflicting writers wins."""
    first = Locator(name="submit", strategy="role", args={"role": "button", "name": "Submit"})
    second = Locator(name="submit", strategy="text", args={"text": "Send"})
    errors = []
    barrier = threading.Barrier(2)

    def writer(locator):
        barrier.wait()
        try:
            with library.transaction(["FormPage"]) as tx:
                tx.extend("FormPage", [locator], [])
                tx.persist(["FormPage"])
        except ConflictError as e:
            errors.append(e)

    threads = [threading.Thread(target=writer, args=(loc,)) for loc in (first, second)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(errors) == 1
    assert library.get("FormPage").locator("submit") in (first, second)


def test_disjoint_pages_do_not_contend(library):
    finished = threading.Event()

    def other_page():
        with library.transaction(["CartPage"]) as tx:
            tx.extend("CartPage", [LOGIN_BUTTON], [CLICK_LOGIN])
        finished.set()

    with library.transaction(["LoginPage"]):
        thread = threading.Thread(target=other_page)
        thread.start()
        thread.join(timeout=5)
        assert finished.is_set()

    assert library.get("CartPage").locator("login_button") == LOGIN_BUTTON


def test_write_all_is_all_or_nothing(tmp_path):
    store = FileStore(str(tmp_path))
    store.write("pages/LoginPage.json", "old\n")
    (tmp_path / "tests").write_text("not a directory", encoding="utf-8")

    with pytest.raises(PersistenceError):
        store.write_all({
            "pages/LoginPage.json": "new\n",
            "pages/login_page.py": "class LoginPage: pass\n",
            "tests/test_login.py": "def test_login(): pass\n",
        })

    assert store.read("pages/LoginPage.json") == "old\n"
    assert store.list("pages") == ["LoginPage.json"]
