"""
Item model for the Lending Ledger.

An item is a catalog title held in a finite number of copies. The catalog
metadata belongs to an external collaborator; the ledger owns only the two
copy counters.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Item(BaseModel):
    """A lendable catalog item and its current copy counts."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Item identifier", ge=1)

    isbn: str = Field(
        ...,
        description="ISBN of the title",
        examples=["9780451524935", "9781501142970"],
    )

    title: str = Field(..., description="Title of the item", min_length=1, max_length=200)

    location: str | None = Field(None, description="Shelf location", examples=["A1", "C3"])

    total_copies: int = Field(..., description="Copies the library owns", ge=0)

    available_copies: int = Field(..., description="Copies on the shelf right now", ge=0)

    @model_validator(mode="after")
    def validate_copy_counts(self) -> "Item":
        """Ensure available copies never exceed total copies."""
        if self.available_copies > self.total_copies:
            raise ValueError(
                f"Available copies ({self.available_copies}) cannot exceed "
                f"total copies ({self.total_copies})"
            )
        return self

    @property
    def is_available(self) -> bool:
        return self.available_copies > 0

    @property
    def copies_on_loan(self) -> int:
        return self.total_copies - self.available_copies
