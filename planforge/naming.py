import keyword
import re


def to_pascal_case(text: str) -> str:
    """Convert text to PascalCase for class names"""
    words = re.sub(r'[^\w\s]', ' ', text).replace('_', ' ').split()
    return ''.join(word[:1].upper() + word[1:] for word in words)


def to_snake_case(text: str) -> str:
    """Convert text (including PascalCase) to snake_case identifiers"""
    text = re.sub(r'([a-z0-9])([A-Z])', r'\1_\2', text)
    text = re.sub(r'[^\w\s-]', '', text).strip().lower()
    name = re.sub(r'[-\s_]+', '_', text).strip('_')
    if not name:
        return ''
    if name[0].isdigit():
        name = f"n{name}"
    if keyword.iskeyword(name):
        name = f"{name}_"
    return name


def parameter_name(name: str) -> str:
    """Method parameter name that is neither a keyword nor `self`: 'from' -> 'from_'"""
    if keyword.iskeyword(name) or name == "self":
        return f"{name}_"
    return name


def slugify(text: str, default: str = "scenario") -> str:
    """Lower-case, hyphenated, filesystem-safe form of a name"""
    slug = re.sub(r'[^a-z0-9]+', '-', text.lower()).strip('-')
    return slug or default


def page_keyword(page_name: str) -> str:
    """'DashboardPage' -> 'dashboard', 'MyAccountPage' -> 'my account'"""
    base = re.sub(r'Page$', '', page_name) or page_name
    return to_snake_case(base).replace('_', ' ')
