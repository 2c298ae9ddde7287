from planforge.models.page import Locator


def _quote(value: str) -> str:
    return repr(value)


def build_selector(locator: Locator) -> str:
    """
    Playwright (sync API) expression, relative to a Page, that finds the locator.
    e.g. get_by_role('button', name='Login')
    """
    args = locator.args
    if locator.strategy == "role":
        if args.get("name"):
            return f"get_by_role({_quote(args['role'])}, name={_quote(args['name'])})"
        return f"get_by_role({_quote(args['role'])})"
    elif locator.strategy == "label":
        return f"get_by_label({_quote(args['text'])})"
    elif locator.strategy == "placeholder":
        return f"get_by_placeholder({_quote(args['text'])})"
    elif locator.strategy == "text":
        return f"get_by_text({_quote(args['text'])})"
    elif locator.strategy == "testid":
        return f"get_by_test_id({_quote(args['id'])})"
    elif locator.strategy == "css":
        return f"locator({_quote(args['selector'])})"
    elif locator.strategy == "xpath":
        return f"locator({_quote('xpath=' + args['selector'])})"
    raise ValueError(f"Unknown locator strategy '{locator.strategy}' for '{locator.name}'")


def locate(page, locator: Locator):
    """Resolves a Locator definition against a live Playwright page."""
    args = locator.args
    if locator.strategy == "role":
        if args.get("name"):
            return page.get_by_role(args["role"], name=args["name"])
        return page.get_by_role(args["role"])
    elif locator.strategy == "label":
        return page.get_by_label(args["text"])
    elif locator.strategy == "placeholder":
        return page.get_by_placeholder(args["text"])
    elif locator.strategy == "text":
        return page.get_by_text(args["text"])
    elif locator.strategy == "testid":
        return page.get_by_test_id(args["id"])
    elif locator.strategy == "css":
        return page.locator(args["selector"])
    elif locator.strategy == "xpath":
        return page.locator(f"xpath={args['selector']}")
    raise ValueError(f"Unknown locator strategy '{locator.strategy}' for '{locator.name}'")
