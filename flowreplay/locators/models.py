"""Pydantic models for portable element locators.

A Locator is created once at record time and is read-only afterwards:
- primary: highest-confidence selector, never empty
- fallbacks: further selectors in priority order, without duplicates
- metadata: descriptive facts used only for disambiguation and fuzzy search
"""

from typing import Any, ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class WireModel(BaseModel):
    """Base for models that travel in the flow document (camelCase keys).

    Only fields present in the input, or set explicitly, are serialized, so
    explicit nulls survive a round trip. Fields named in ``always_dumped``
    are serialized even when left at their default.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="allow")

    always_dumped: ClassVar[tuple[str, ...]] = ()

    def model_post_init(self, __context: Any) -> None:
        self.model_fields_set.update(self.always_dumped)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class FormContext(WireModel):
    """Position of a form field inside its form.

    Attributes:
        form_selector: Selector of the owning form
        field_index: 1-based position among the form's input/textarea/select descendants
    """

    form_selector: str = Field(..., alias="formSelector")
    field_index: int = Field(..., alias="fieldIndex", ge=1)

    def field_selector(self) -> str:
        """Selector matching every field of the form."""
        fs = self.form_selector
        return f"{fs} input, {fs} textarea, {fs} select"


class LocatorMetadata(WireModel):
    """Descriptive facts captured alongside the selectors."""

    text: Optional[str] = None
    role: Optional[str] = None
    tag_name: Optional[str] = Field(None, alias="tagName")
    test_id: Optional[str] = Field(None, alias="testId")
    aria_label: Optional[str] = Field(None, alias="ariaLabel")
    placeholder: Optional[str] = None
    title: Optional[str] = None
    label_text: Optional[str] = Field(None, alias="labelText")
    form_context: Optional[FormContext] = Field(None, alias="formContext")


class Locator(WireModel):
    """Multi-candidate reference to one DOM element.

    Example:
        {
            "primary": "[data-testid=\\"login\\"]",
            "fallbacks": ["button.btn-primary", "form > button:nth-of-type(2)"],
            "metadata": {"tagName": "button", "role": "button", "text": "Log in"}
        }
    """

    primary: str = Field(..., description="Highest-confidence selector")
    fallbacks: list[str] = Field(default_factory=list, description="Fallback selectors in priority order")
    metadata: Optional[LocatorMetadata] = Field(None, description="Disambiguation metadata")

    @field_validator("primary")
    @classmethod
    def validate_primary(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Locator primary selector cannot be empty")
        return v

    @field_validator("fallbacks")
    @classmethod
    def dedupe_fallbacks(cls, v: list[str], info: ValidationInfo) -> list[str]:
        seen = {info.data.get("primary")}
        unique = []
        for selector in v:
            if selector and selector not in seen:
                seen.add(selector)
                unique.append(selector)
        return unique

    @property
    def selectors(self) -> list[str]:
        """All selectors in resolution order."""
        return [self.primary, *self.fallbacks]

    def describe(self) -> str:
        """Short human-readable description used in error messages."""
        parts = [f"selectors={self.selectors}"]
        if self.metadata is not None:
            meta = self.metadata.to_dict()
            if meta:
                parts.append(f"metadata={meta}")
        return ", ".join(parts)
