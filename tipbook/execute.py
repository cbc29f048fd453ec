from pathlib import Path
from typing import List, Optional

from tqdm.auto import tqdm

from tipbook.models import BookOutline, ChapterLength, Item
from tipbook.utils import (
    CostTracker,
    TextGenerator,
    make_timestamp,
    singular,
    write_json,
)

writer_instructions = (
    "You are a helpful assistant that writes detailed book chapters."
)

chapter_prompt_template = """
Write a {word_range} chapter in {language} about the following {item_singular}:

"{title}: {summary}"

Format the chapter with a title, introduction, main content with examples,
and a conclusion. Use markdown formatting.
""".strip()


def expand_item(
    generator: TextGenerator,
    item: Item,
    language: str,
    length: ChapterLength,
    item_kind: str,
    tracker: Optional[CostTracker] = None,
) -> str:
    """Writes the chapter for one item and returns the model's markdown as-is."""
    prompt = chapter_prompt_template.format(
        word_range=length.word_range,
        language=language,
        item_singular=singular(item_kind),
        title=item.title,
        summary=item.summary,
    )

    result = generator.generate(instructions=writer_instructions, prompt=prompt)

    if tracker is not None:
        tracker.update(result, "Chapter")

    return result.text


def render_table_of_contents(outline: BookOutline) -> str:
    """Markdown table of contents linking every item to chapter-<number>.md."""
    toc = f"# {outline.title}\n\n## Table of Contents\n\n"

    for category in outline.categories:
        toc += f"### {category.name}\n\n"
        for item in category.items:
            toc += f"{item.number}. [{item.title}](chapter-{item.number}.md)\n"
        toc += "\n"

    return toc


class ContentWriter:
    """Abstract base class for writing the finished book."""

    def save_table_of_contents(self, content: str):
        raise NotImplementedError

    def save_structure(self, outline: BookOutline):
        raise NotImplementedError

    def save_chapter(self, chapter_number: int, content: str):
        raise NotImplementedError


class FileSystemWriter(ContentWriter):
    """Writes the book into a single folder on the file system."""

    toc_file_name = "README.md"
    structure_file_name = "book-structure.json"

    def __init__(self, root_folder: Path):
        self.root_folder = root_folder

    def _get_chapter_path(self, chapter_number: int) -> Path:
        return self.root_folder / f"chapter-{chapter_number}.md"

    def save_table_of_contents(self, content):
        file = self.root_folder / self.toc_file_name
        file.write_text(content, encoding="utf-8")

    def save_structure(self, outline):
        write_json(self.root_folder / self.structure_file_name, outline.model_dump())

    def save_chapter(self, chapter_number, content):
        file = self._get_chapter_path(chapter_number)
        file.write_text(content, encoding="utf-8")


def create_book_folder(output_root: Path) -> Path:
    """Creates a new book-<timestamp> folder. Never reuses an existing one."""
    output_root = Path(output_root)
    output_root.mkdir(parents=True, exist_ok=True)

    book_folder = output_root.resolve() / f"book-{make_timestamp()}"
    book_folder.mkdir(exist_ok=False)
    return book_folder


def assemble_book(
    outline: BookOutline, chapters: List[str], output_root: Path
) -> Path:
    """
    Writes the table of contents, the outline and every chapter into a new
    book folder and returns its path.

    Chapter files are named by their position in chapters (chapter-1.md,
    chapter-2.md, ...), while the table of contents links by item number.
    The two agree only when the item numbers are exactly 1..N.
    """
    if len(chapters) != outline.item_count():
        raise ValueError(
            f"Got {len(chapters)} chapters for {outline.item_count()} items"
        )

    book_folder = create_book_folder(output_root)
    writer = FileSystemWriter(book_folder)

    writer.save_table_of_contents(render_table_of_contents(outline))
    writer.save_structure(outline)

    for i, content in enumerate(chapters):
        writer.save_chapter(i + 1, content)

    return book_folder


class BookExecutor:
    """Writes a chapter for every item of the outline, then saves the book."""

    def __init__(
        self,
        outline: BookOutline,
        generator: TextGenerator,
        language: str,
        length: ChapterLength,
        item_kind: str,
        tracker: Optional[CostTracker] = None,
    ):
        self.outline = outline
        self.generator = generator
        self.language = language
        self.length = length
        self.item_kind = item_kind
        self.tracker = tracker or CostTracker(echo=tqdm.write)

    def write_chapters(self) -> List[str]:
        """Generates the chapters one at a time, in item number order.

        Nothing is written to disk here: if any item fails, the error
        propagates and the chapters written so far are discarded.
        """
        items = self.outline.all_items()
        chapters = []

        for item in tqdm(items, desc="Writing chapters", unit="chapter"):
            tqdm.write(f"Generating chapter for: {item.title}...")
            chapter = expand_item(
                self.generator,
                item,
                self.language,
                self.length,
                self.item_kind,
                tracker=self.tracker,
            )
            chapters.append(chapter)

        return chapters

    def execute(self, output_root: Path) -> Path:
        chapters = self.write_chapters()
        book_folder = assemble_book(self.outline, chapters, output_root)
        print(f"Execution completed. Total Cost: ${self.tracker.total_cost:.6f}")
        return book_folder
