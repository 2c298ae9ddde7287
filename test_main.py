import json

from planforge.main import main


def test_pages_command_lists_library(tmp_path, capsys):
    pages = tmp_path / "pages"
    pages.mkdir()
    definition = {
        "name": "LoginPage",
        "locators": [{"name": "login_button", "strategy": "role", "args": {"role": "button", "name": "Login"}}],
        "actions": [{"name": "click_login_button", "params": [],
                     "body": [{"kind": "click", "locator": "login_button"}]}],
    }
    (pages / "LoginPage.json").write_text(json.dumps(definition), encoding="utf-8")

    code = main(["--root", str(tmp_path), "--config", str(tmp_path / "none.yaml"), "--verbose", "pages"])
    out = capsys.readouterr().out
    assert code == 0
    assert "LoginPage: 1 locators, 1 methods" in out
    assert "  - click_login_button()" in out


def test_generate_requires_a_plan(tmp_path, capsys):
    code = main(["--root", str(tmp_path), "--config", str(tmp_path / "none.yaml"), "generate"])
    assert code == 2
    assert "plan file is required" in capsys.readouterr().out
