"""
Renders PageObjectDefinitions into importable Python page-object modules.
"""
from typing import List

from planforge.driver.selectors import build_selector
from planforge.models.actions import ActionKind
from planforge.models.page import ActionMethod, ActionTemplate, PageObjectDefinition
from planforge.naming import to_snake_case

HEADER = "# Generated by planforge. Entries are only ever appended; edit the JSON definition, not this file."


def module_name(page_name: str) -> str:
    return to_snake_case(page_name)


class PageRenderer:
    def render(self, definition: PageObjectDefinition) -> str:
        lines = [
            HEADER,
            "from playwright.sync_api import Page, expect",
            "",
            "",
            f"class {definition.name}:",
            f"    URL = {definition.url!r}",
            "",
            "    def __init__(self, page: Page):",
            "        self.page = page",
        ]
        for locator in definition.locators:
            lines.append(f"        self.{locator.name} = page.{build_selector(locator)}")

        for method in definition.actions:
            lines.append("")
            lines.extend(self._render_method(method))

        return "\n".join(lines) + "\n"

    def _render_method(self, method: ActionMethod) -> List[str]:
        signature = ", ".join(["self"] + method.params)
        lines = [f"    def {method.name}({signature}):"]
        for template in method.body:
            lines.append(f"        {self._render_template(template)}")
        return lines

    def _render_template(self, template: ActionTemplate) -> str:
        kind = ActionKind(template.kind)
        params = template.params
        target = f"self.{template.locator}" if template.locator else None

        if kind == ActionKind.NAVIGATE:
            return f"self.page.goto({params[0]})" if params else "self.page.goto(self.URL)"
        elif kind == ActionKind.FILL:
            return f"{target}.fill({params[0]})"
        elif kind == ActionKind.CLICK:
            return f"{target}.click()"
        elif kind == ActionKind.SELECT_OPTION:
            return f"{target}.select_option({params[0]})"
        elif kind == ActionKind.HOVER:
            return f"{target}.hover()"
        elif kind == ActionKind.DRAG:
            return f"{target}.drag_to(self.{template.target})"
        elif kind == ActionKind.UPLOAD:
            return f"{target}.set_input_files({params[0]})"
        elif kind == ActionKind.HANDLE_DIALOG:
            # Registers a handler for the NEXT dialog; the param is 'accept' or 'dismiss'
            return f"self.page.once('dialog', lambda dialog: getattr(dialog, {params[0]})())"
        elif kind == ActionKind.PRESS_KEY:
            if target:
                return f"{target}.press({params[0]})"
            return f"self.page.keyboard.press({params[0]})"
        elif kind == ActionKind.WAIT:
            if target:
                return f"{target}.wait_for()"
            return f"self.page.wait_for_timeout(int({params[0]}))"
        elif kind == ActionKind.VERIFY_VISIBLE:
            return f"expect({target}).to_be_visible()"
        elif kind == ActionKind.VERIFY_TEXT:
            return f"expect({target}).to_contain_text({params[0]})"
        elif kind == ActionKind.VERIFY_VALUE:
            return f"expect({target}).to_have_value({params[0]})"

        raise ValueError(f"Cannot render action '{template.kind}'")
