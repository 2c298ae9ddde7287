from typing import Iterable, List, Optional, Tuple

from planforge.errors import ConflictError
from planforge.models.page import ActionMethod, Locator, PageObjectDefinition


def _merge_entries(page: str, entry: str, existing: list, incoming: Iterable) -> list:
    by_name = {item.name: item for item in existing}
    added = []
    for item in incoming:
        current = by_name.get(item.name)
        if current is None:
            by_name[item.name] = item
            added.append(item)
        elif current != item:
            raise ConflictError(page, entry, item.name)
    return added


def merge_definition(
    definition: PageObjectDefinition,
    new_locators: Iterable[Locator],
    new_actions: Iterable[ActionMethod],
    url: Optional[str] = None,
) -> Tuple[PageObjectDefinition, bool]:
    """
    Additive merge. Returns the merged definition and whether anything was added.

    Entries whose name already exists are kept as they are; a name that exists
    with a different body raises ConflictError before anything is changed.
    The page URL is only filled in when the definition has none yet.
    """
    locators: List[Locator] = list(new_locators)
    actions: List[ActionMethod] = list(new_actions)

    added_locators = _merge_entries(definition.name, "locator", definition.locators, locators)
    added_actions = _merge_entries(definition.name, "method", definition.actions, actions)

    known = {loc.name for loc in definition.locators} | {loc.name for loc in added_locators}
    for method in added_actions:
        for template in method.body:
            for ref in (template.locator, template.target):
                if ref and ref not in known:
                    raise ValueError(f"{definition.name}.{method.name} references unknown locator '{ref}'")

    set_url = url is not None and definition.url is None
    if not added_locators and not added_actions and not set_url:
        return definition, False

    merged = definition.model_copy(update={
        "url": url if set_url else definition.url,
        "locators": definition.locators + added_locators,
        "actions": definition.actions + added_actions,
    })
    return merged, True
