from enum import Enum

from pydantic import BaseModel, ConfigDict

from tipbook.errors import ValidationError


class Item(BaseModel):
    model_config = ConfigDict(extra="allow")

    number: int
    title: str
    summary: str  # One sentence, used as the seed for the chapter


class Category(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    items: list[Item]


class BookOutline(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str
    categories: list[Category]

    def all_items(self) -> list[Item]:
        """Returns every item of the book sorted by its number."""
        items = [item for category in self.categories for item in category.items]
        return sorted(items, key=lambda item: item.number)

    def item_count(self) -> int:
        return sum(len(category.items) for category in self.categories)


class ChapterLength(str, Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"

    @property
    def word_range(self) -> str:
        return {
            ChapterLength.SHORT: "300-500 words",
            ChapterLength.MEDIUM: "800-1200 words",
            ChapterLength.LONG: "1500-2000 words",
        }[self]


def parse_chapter_length(text: str) -> ChapterLength:
    """Parses a chapter length answer such as 'Medium' (case-insensitive)."""
    token = (text or "").strip().lower()
    try:
        return ChapterLength(token)
    except ValueError:
        raise ValidationError(
            "Invalid chapter length. Please enter 'short', 'medium', or 'long'."
        ) from None
