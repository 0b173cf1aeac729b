"""Suffix-rule inflection used for API names and component keys.

The rules are a fixed suffix table, not a dictionary. Irregular nouns and
words whose singular already ends in ``e`` before an ``s`` (``page`` ->
``pages`` -> ``pag``) do not round-trip, and their generated API and
collection names must be checked by hand.
"""

from typing import Tuple


def pluralize(word: str) -> str:
    """Plural form of a type or field name."""
    if word.endswith("y"):
        return word[:-1] + "ies"
    if word.endswith(("s", "sh", "ch", "x", "z")):
        return word + "es"
    return word + "s"


def singularize(word: str) -> str:
    """Singular form of a type or field name."""
    if word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith("es"):
        return word[:-2]
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def component_key_parts(field_name: str) -> Tuple[str, str]:
    """(category, name) of the component derived from a field name."""
    return singularize(field_name), pluralize(field_name)


def component_key(field_name: str) -> str:
    """Composite ``category.name`` key of the component for a field."""
    category, name = component_key_parts(field_name)
    return f"{category}.{name}"


def component_collection_name(key: str) -> str:
    """Storage collection name for a component key."""
    category, _, name = key.partition(".")
    return f"components_{category}_{pluralize(name)}"
