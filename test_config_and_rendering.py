import pytest
from pydantic import ValidationError

from planforge.config import GeneratorConfig, load_config
from planforge.driver.selectors import build_selector
from planforge.library.renderer import PageRenderer
from planforge.models.page import ActionMethod, ActionTemplate, Locator, PageObjectDefinition
from planforge.naming import page_keyword, slugify, to_pascal_case, to_snake_case


def test_load_config(tmp_path):
    path = tmp_path / "planforge.yaml"
    path.write_text(
        "base_url: https://shop.test\n"
        "fold_mode: existing\n"
        "test_data:\n"
        "  username: alice\n"
        "pages:\n"
        "  CartPage:\n"
        "    url: /cart\n"
        "    aliases: [basket]\n",
        encoding="utf-8",
    )
    config = load_config(str(path))
    assert config.fold_mode == "existing"
    assert config.test_data["username"] == "alice"
    assert config.page_url("CartPage") == "https://shop.test/cart"
    assert config.pages["CartPage"].aliases == ["basket"]


def test_missing_config_gives_defaults(tmp_path):
    config = load_config(str(tmp_path / "absent.yaml"))
    assert config == GeneratorConfig()


def test_unknown_fold_mode(tmp_path):
    path = tmp_path / "planforge.yaml"
    path.write_text("fold_mode: sometimes\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(str(path))


def test_fold_mode_is_validated_on_the_model():
    with pytest.raises(ValidationError):
        GeneratorConfig(fold_mode="bogus")
    assert GeneratorConfig(fold_mode="none").fold_mode == "none"


def test_naming_helpers():
    assert to_pascal_case("user authentication") == "UserAuthentication"
    assert to_snake_case("DashboardPage") == "dashboard_page"
    assert to_snake_case("2 step login") == "n2_step_login"
    assert to_snake_case("class") == "class_"
    assert slugify("Valid Login!") == "valid-login"
    assert page_keyword("MyAccountPage") == "my account"


@pytest.mark.parametrize("locator, expected", [
    (Locator(name="a", strategy="role", args={"role": "button", "name": "Login"}), "get_by_role('button', name='Login')"),
    (Locator(name="b", strategy="label", args={"text": "Email"}), "get_by_label('Email')"),
    (Locator(name="c", strategy="testid", args={"id": "cart-badge"}), "get_by_test_id('cart-badge')"),
    (Locator(name="d", strategy="xpath", args={"selector": "//h1"}), "locator('xpath=//h1')"),
])
def test_build_selector(locator, expected):
    assert build_selector(locator) == expected


def test_rendered_page_module_compiles():
    definition = PageObjectDefinition(
        name="LoginPage",
        url="https://app.test/login",
        locators=[
            Locator(name="username_field", strategy="label", args={"text": "Username"}),
            Locator(name="login_button", strategy="role", args={"role": "button", "name": "Login"}),
        ],
        actions=[
            ActionMethod(name="navigate", body=[ActionTemplate(kind="navigate")]),
            ActionMethod(
                name="login",
                params=["username"],
                body=[
                    ActionTemplate(kind="fill", locator="username_field", params=["username"]),
                    ActionTemplate(kind="click", locator="login_button"),
                ],
            ),
            ActionMethod(name="handle_dialog", params=["action"],
                         body=[ActionTemplate(kind="handleDialog", params=["action"])]),
        ],
    )
    source = PageRenderer().render(definition)
    assert "URL = 'https://app.test/login'" in source
    assert "def login(self, username):" in source
    assert "self.username_field.fill(username)" in source
    assert "self.page.goto(self.URL)" in source
    compile(source, "login_page.py", "exec")
