"""Filter encoding for REST collection queries.

A filter narrows a collection by one attribute or relationship field::

    filter=a/family.eq.peer
    filter[]=a/name.cn.edge&filter[]=r/tags.eq.core|transit
"""

from collections.abc import Mapping, Sequence
from enum import Enum
from urllib.parse import quote_plus

from pydantic import BaseModel, ConfigDict, Field


class FilterKind(str, Enum):
    """What a filter field refers to. Values are the wire abbreviations."""

    ATTRIBUTE = "a"
    RELATIONSHIP = "r"


class FilterOperator(str, Enum):
    """Supported comparison operators. Values are the wire abbreviations."""

    EQUALS = "eq"
    CONTAINS = "cn"


_KIND_ALIASES = {
    "a": FilterKind.ATTRIBUTE,
    "attribute": FilterKind.ATTRIBUTE,
    "r": FilterKind.RELATIONSHIP,
    "relationship": FilterKind.RELATIONSHIP,
}

_OPERATOR_ALIASES = {
    "eq": FilterOperator.EQUALS,
    "equals": FilterOperator.EQUALS,
    "cn": FilterOperator.CONTAINS,
    "contains": FilterOperator.CONTAINS,
}


class Filter(BaseModel):
    """A single REST search filter."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: FilterKind = Field(description="Attribute or relationship filter")
    field: str = Field(min_length=1, description="Field name to match")
    operator: FilterOperator = Field(description="Comparison operator")
    search: str | list[str] = Field(description="Search term or alternatives")

    @classmethod
    def attribute(cls, field: str, search: str | list[str], contains: bool = False) -> "Filter":
        """Build an attribute filter."""
        operator = FilterOperator.CONTAINS if contains else FilterOperator.EQUALS
        return cls(kind=FilterKind.ATTRIBUTE, field=field, operator=operator, search=search)

    @classmethod
    def relationship(
        cls, field: str, search: str | list[str], contains: bool = False
    ) -> "Filter":
        """Build a relationship filter."""
        operator = FilterOperator.CONTAINS if contains else FilterOperator.EQUALS
        return cls(kind=FilterKind.RELATIONSHIP, field=field, operator=operator, search=search)

    @classmethod
    def parse(cls, text: str) -> "Filter":
        """Parse the ``kind/field.operator.search`` command line form.

        ``search`` alternatives are separated with ``|``.

        Raises:
            ValueError: If the text is malformed or uses unknown values.
        """
        kind_text, sep, rest = text.partition("/")
        parts = rest.split(".", 2)
        if not sep or len(parts) != 3:
            msg = f"Filter must look like kind/field.operator.search, got '{text}'"
            raise ValueError(msg)
        field, operator_text, search_text = parts
        kind = _KIND_ALIASES.get(kind_text.lower())
        operator = _OPERATOR_ALIASES.get(operator_text.lower())
        if kind is None or operator is None:
            msg = f"Unknown filter kind or operator in '{text}'"
            raise ValueError(msg)
        search: str | list[str] = search_text.split("|") if "|" in search_text else search_text
        return cls(kind=kind, field=field, operator=operator, search=search)


FilterLike = Filter | Mapping[str, object]
FilterSpec = FilterLike | Sequence[FilterLike]


def encode_search(search: object) -> str:
    """Percent-encode a search value.

    Lists are encoded term by term and joined with ``|``.
    """
    if isinstance(search, (list, tuple)):
        return "|".join(quote_plus(str(term), safe="") for term in search)
    return quote_plus(str(search), safe="")


def encode_filters(filters: FilterSpec | None) -> str:
    """Turn a filter or list of filters into a query-string fragment.

    A single filter becomes ``filter=...``. In a list, entries whose kind or
    operator is not supported are dropped and the rest become
    ``filter[]=...`` joined with ``&``.

    Args:
        filters: A filter, a sequence of filters, or None.

    Returns:
        Query-string fragment without a leading ``?``; empty for no filters.
    """
    if filters is None:
        return ""

    if isinstance(filters, (Filter, Mapping)):
        kind, field, operator, search = _unpack(filters)
        kind_text = _wire(kind, _KIND_ALIASES)
        operator_text = _wire(operator, _OPERATOR_ALIASES)
        return f"filter={kind_text}/{field}.{operator_text}.{encode_search(search)}"

    args: list[str] = []
    for entry in filters:
        kind, field, operator, search = _unpack(entry)
        kind_value = _KIND_ALIASES.get(str(kind).lower())
        operator_value = _OPERATOR_ALIASES.get(str(operator).lower())
        if kind_value is None or operator_value is None:
            continue
        args.append(
            f"filter[]={kind_value.value}/{field}.{operator_value.value}.{encode_search(search)}"
        )
    return "&".join(args)


def _unpack(entry: FilterLike) -> tuple[object, object, object, object]:
    if isinstance(entry, Filter):
        return entry.kind.value, entry.field, entry.operator.value, entry.search
    kind = entry.get("kind", entry.get("type"))
    return kind, entry.get("field"), entry.get("operator"), entry.get("search", "")


def _wire(value: object, aliases: Mapping[str, Enum]) -> str:
    """Map a long name to its abbreviation, passing unknown values through."""
    known = aliases.get(str(value).lower())
    return str(known.value) if known is not None else str(value)
