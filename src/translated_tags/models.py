from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

ValueId = int | str


class AttributeSettings(BaseModel):
    """Persisted configuration of one tag attribute.

    Args:
        id: Attribute id (``att_id`` in the relation table).
        model_table: Table holding the tagged items.
        col_name: Column name of the attribute inside its model.
        type: Attribute type name.
        tag_table: Tag source table.
        tag_column: Display value column of the tag source table.
        tag_id: Id column of the tag source table.
        tag_alias: Alias column (defaults to the id column).
        tag_sorting: Sorting column (defaults to the id column).
        tag_where: Raw SQL boolean fragment ANDed into every source query.
        tag_langcolumn: Language column of the tag source table.
        tag_srctable: Optional sort-source table, joined on its ``id`` column.
        tag_srcsorting: Sort column of the sort-source table.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Attribute id")
    model_table: str = Field(default="", description="Table holding the tagged items")
    col_name: str = Field(default="", description="Column name of the attribute")
    type: str = Field(default="translatedtags", description="Attribute type name")
    tag_table: str | None = Field(default=None, description="Tag source table")
    tag_column: str | None = Field(default=None, description="Value column")
    tag_id: str | None = Field(default="id", description="Id column")
    tag_alias: str | None = Field(default=None, description="Alias column")
    tag_sorting: str | None = Field(default=None, description="Sorting column")
    tag_where: str | None = Field(
        default=None, description="Raw SQL predicate, no ';' outside of quotes"
    )
    tag_langcolumn: str | None = Field(default=None, description="Language column")
    tag_srctable: str | None = Field(default=None, description="Sort-source table")
    tag_srcsorting: str | None = Field(default=None, description="Sort-source column")

    @field_validator(
        "tag_table",
        "tag_column",
        "tag_id",
        "tag_alias",
        "tag_sorting",
        "tag_where",
        "tag_langcolumn",
        "tag_srctable",
        "tag_srcsorting",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def get(self, name: str) -> Any:
        """Generic setting accessor. Unknown settings return None."""
        return getattr(self, name, None) if name in type(self).model_fields else None


class LanguageContext(BaseModel):
    """Active language and the fallback ("main") language of a request.

    Args:
        active_language: Language the caller wants values in.
        fallback_language: Language used for values missing in the active one.
    """

    model_config = ConfigDict(frozen=True)

    active_language: str = Field(..., examples=["en"])
    fallback_language: str = Field(..., examples=["de"])

    @property
    def needs_fallback(self) -> bool:
        return self.active_language != self.fallback_language


class FilterOptionsRequest(BaseModel):
    """Filter option lookup.

    Args:
        item_ids: Restrict to values used by these items (None = no restriction).
        used_only: Only values related to any item.
        with_counts: Also return relation counts keyed by id and alias.
    """

    item_ids: list[int] | None = Field(default=None, description="Item id restriction")
    used_only: bool = Field(default=False, description="Only values in use")
    with_counts: bool = Field(default=False, description="Return relation counts")


class FilterOptionsResult(BaseModel):
    options: dict[ValueId, Any] = Field(..., description="alias -> display value")
    counts: dict[ValueId, int] | None = Field(default=None, description="id/alias -> relation count")


class ItemDataRequest(BaseModel):
    item_ids: list[int] = Field(..., description="Items to resolve")
    language: str | None = Field(
        default=None, description="Resolve a single language without fallback"
    )


class ItemDataResult(BaseModel):
    items: dict[int, dict[ValueId, dict[str, Any]]] = Field(
        ..., description="item id -> tag id -> tag row"
    )


class ItemSearchRequest(BaseModel):
    pattern: str = Field(..., description="Search pattern, '*' and '?' are wildcards")
    languages: list[str] | None = Field(
        default=None, description="Language restriction (None = active language, [] = all)"
    )


class ItemSearchResult(BaseModel):
    item_ids: list[int] = Field(..., description="Matching item ids")


class ConfigurationCheckResult(BaseModel):
    attribute_id: int = Field(..., description="Attribute id")
    configured: bool = Field(..., description="True if the attribute can resolve values")
    problems: list[str] = Field(default_factory=list, description="Configuration problems")
