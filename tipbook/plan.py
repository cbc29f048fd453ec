import json
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from tipbook.errors import GenerationError, ParseError
from tipbook.models import BookOutline
from tipbook.utils import (
    CostTracker,
    TextGenerator,
    make_timestamp,
    singular,
    write_json,
)

planner_instructions = (
    "You are a helpful assistant that generates book outlines in JSON format."
)

outline_prompt_template = """
Create a list of {count} {item_kind} about "{theme}" in {language}.
Organize them into 3-5 logical categories.

Give the book a title. Number the {item_kind} from 1 to {count} across the
whole book, not per category. For every {item_singular} give a title and a
one sentence summary of what the {item_singular} is about.
""".strip()


def generate_outline(
    generator: TextGenerator,
    theme: str,
    count: int,
    language: str,
    item_kind: str,
    tracker: Optional[CostTracker] = None,
) -> BookOutline:
    """Asks the model for the book outline in a single JSON-mode call.

    The number of items is not checked against count: the outline is used
    the way the model returns it.
    """
    print(f"Generating {count} {theme} {item_kind} in {language}...")

    prompt = outline_prompt_template.format(
        count=count,
        item_kind=item_kind,
        item_singular=singular(item_kind),
        theme=theme,
        language=language,
    )

    result = generator.generate(
        instructions=planner_instructions,
        prompt=prompt,
        json_schema=BookOutline.model_json_schema(),
    )

    if tracker is not None:
        tracker.update(result, "Outline")

    try:
        outline = BookOutline.model_validate_json(result.text)
    except PydanticValidationError as e:
        raise GenerationError(f"Model reply is not a valid book outline: {e}") from e

    if outline.item_count() == 0:
        raise GenerationError("Model returned an outline without any items")

    return outline


def save_outline(outline: BookOutline, folder: Path) -> Path:
    """
    Saves the outline as a checkpoint file that can be reviewed and edited
    before the chapters are written. Returns the absolute path of the file.
    """
    folder = Path(folder)
    folder.mkdir(parents=True, exist_ok=True)

    items_path = folder.resolve() / f"book-items-{make_timestamp()}.json"
    write_json(items_path, outline.model_dump(), mode="x")
    return items_path


def load_outline(path: Path) -> BookOutline:
    """Loads an outline checkpoint written by save_outline (or edited by hand)."""
    path = Path(path)
    print(f"Loading book structure from {path}...")

    text = path.read_text(encoding="utf-8")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"{path} is not valid JSON: {e}") from e

    try:
        return BookOutline.model_validate(data)
    except PydanticValidationError as e:
        raise ParseError(f"{path} does not contain a book outline: {e}") from e
