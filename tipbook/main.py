import argparse
import sys
from pathlib import Path
from typing import Optional

import questionary

from tipbook.config import RunContext, load_settings
from tipbook.errors import BookGeneratorError, ValidationError
from tipbook.execute import BookExecutor
from tipbook.models import BookOutline, ChapterLength, parse_chapter_length
from tipbook.plan import generate_outline, load_outline, save_outline
from tipbook.utils import CostTracker, create_generator

MIN_COUNT = 1
MAX_COUNT = 100


def parse_count(text: str) -> int:
    """Parses the requested number of items, which must be in 1..100."""
    try:
        count = int((text or "").strip())
    except ValueError:
        count = None

    if count is None or not MIN_COUNT <= count <= MAX_COUNT:
        raise ValidationError(
            f"Invalid count. Please enter a number between {MIN_COUNT} and {MAX_COUNT}."
        )
    return count


def ask_questionary(question: str) -> str:
    """Reads one answer from the terminal. Ctrl-C aborts the run."""
    answer = questionary.text(question).ask()
    if answer is None:
        raise ValidationError("Input cancelled.")
    return answer.strip()


class BookOrchestrator:
    """Runs outline -> (checkpoint) -> chapters -> book folder for one book."""

    def __init__(self, context: RunContext):
        self.context = context
        self.tracker = CostTracker()

    @property
    def output_root(self) -> Path:
        return self.context.settings.output_root

    def run(self) -> Path:
        """Returns the book folder, or the checkpoint file in items-only mode."""
        if self.context.input_file is not None:
            return self._run_from_checkpoint(self.context.input_file)
        return self._run_fresh()

    def _run_from_checkpoint(self, input_file: Path) -> Path:
        if not self.context.supports_checkpoint:
            raise ValidationError("Loading the book structure from a file is disabled.")

        if self.context.items_only:
            print("--items-only is ignored when --input-file is given.")

        outline = load_outline(input_file)

        ask = self.context.ask
        language = ask(
            "What language should the chapters be written in? (e.g., English, Spanish): "
        )
        item_kind = ask(
            "What type of items does the book contain? "
            "(tips/advice/patterns/recipes/strategies/...): "
        )
        length = parse_chapter_length(
            ask("How long should each chapter be? (short/medium/long): ")
        )

        return self._write_book(outline, language, length, item_kind)

    def _run_fresh(self) -> Path:
        items_only = self.context.items_only
        if items_only and not self.context.supports_checkpoint:
            raise ValidationError("Items-only mode needs checkpoint support.")

        ask = self.context.ask
        language = ask(
            "What language should the book be written in? (e.g., English, Spanish): "
        )
        theme = ask("What theme or topic should the book cover?: ")
        item_kind = ask(
            "What type of items should the book contain? "
            "(tips/advice/patterns/recipes/strategies/...): "
        )
        count = parse_count(
            ask(f"How many {item_kind} should the book contain? ({MIN_COUNT}-{MAX_COUNT}): ")
        )

        length = None
        if not items_only:
            length = parse_chapter_length(
                ask("How long should each chapter be? (short/medium/long): ")
            )

        outline = generate_outline(
            self.context.outline_generator,
            theme,
            count,
            language,
            item_kind,
            tracker=self.tracker,
        )

        if items_only:
            items_path = save_outline(outline, self.output_root)
            print(f"\nItems list generated successfully! Saved to: {items_path}")
            print("You can now review and modify this JSON file.")
            print("To generate the book content based on this file, run:")
            print(f"tipbook --input-file {items_path}")
            return items_path

        return self._write_book(outline, language, length, item_kind)

    def _write_book(
        self,
        outline: BookOutline,
        language: str,
        length: ChapterLength,
        item_kind: str,
    ) -> Path:
        executor = BookExecutor(
            outline,
            self.context.chapter_generator,
            language,
            length,
            item_kind,
            tracker=self.tracker,
        )
        book_folder = executor.execute(self.output_root)
        print(f"\nBook generated successfully! Files saved to: {book_folder}")
        return book_folder


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tipbook",
        description=(
            "Generate a book of tips, recipes, patterns and the like: "
            "an outline first, then one chapter per item."
        ),
    )
    parser.add_argument(
        "--items-only",
        action="store_true",
        help="Only generate the list of items and save it as a JSON file for review.",
    )
    parser.add_argument(
        "--input-file",
        type=Path,
        help="Write the chapters for a JSON items file made with --items-only.",
    )
    parser.add_argument(
        "-o",
        "--output-root",
        type=Path,
        help="Folder for item files and books. Defaults to the current folder.",
    )
    return parser.parse_args(argv)


def build_context(args: argparse.Namespace) -> RunContext:
    overrides = {}
    if args.output_root is not None:
        overrides["output_root"] = args.output_root

    settings = load_settings(**overrides)

    return RunContext(
        settings=settings,
        outline_generator=create_generator(settings.api_key, settings.structure_model),
        chapter_generator=create_generator(settings.api_key, settings.chapter_model),
        ask=ask_questionary,
        items_only=args.items_only,
        input_file=args.input_file,
    )


def main(argv: Optional[list] = None) -> int:
    """
    tipbook
    tipbook --items-only
    tipbook --input-file book-items-2024-05-01T10-22-03-120456.json
    """
    args = parse_args(argv)

    print("Welcome to the Book Generator!")
    print("This program will help you create a book using Gemini.\n")

    try:
        context = build_context(args)
        BookOrchestrator(context).run()
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130
    except (BookGeneratorError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
