import io
import json
import os
import shutil
import tempfile
import unittest
from contextlib import redirect_stderr
from pathlib import Path
from unittest.mock import MagicMock, patch

from tipbook.config import RunContext, Settings
from tipbook.errors import GenerationError, ValidationError
from tipbook.main import BookOrchestrator, main, parse_args, parse_count
from tipbook.models import BookOutline
from tipbook.plan import save_outline
from tipbook.utils import GenerationResult, TextGenerator

OUTLINE_DATA = {
    "title": "Focus Tips",
    "categories": [
        {
            "name": "Mornings",
            "items": [
                {"number": 1, "title": "Plan the night before", "summary": "Decide early."},
                {"number": 2, "title": "No phone first", "summary": "Protect attention."},
            ],
        },
        {
            "name": "Work",
            "items": [
                {"number": 3, "title": "Single task", "summary": "One thing at a time."},
            ],
        },
    ],
}


def result(text):
    return GenerationResult(
        text=text,
        usage_metadata={'prompt_token_count': 10, 'candidates_token_count': 10},
        model="models/gemini-2.5-flash",
    )


def scripted_ask(answers):
    """Answers prompts in order, failing loudly if asked more than expected."""
    remaining = list(answers)

    def ask(question):
        if not remaining:
            raise AssertionError(f"Unexpected question: {question}")
        return remaining.pop(0)

    return ask


class TestParseCount(unittest.TestCase):
    def test_valid_bounds(self):
        self.assertEqual(parse_count("1"), 1)
        self.assertEqual(parse_count(" 100 "), 100)
        self.assertEqual(parse_count("18"), 18)

    def test_out_of_range(self):
        for answer in ["0", "101", "-5"]:
            with self.assertRaises(ValidationError):
                parse_count(answer)

    def test_not_a_number(self):
        for answer in ["", "ten", "3.5", None]:
            with self.assertRaises(ValidationError):
                parse_count(answer)


class TestParseArgs(unittest.TestCase):
    def test_defaults(self):
        args = parse_args([])
        self.assertFalse(args.items_only)
        self.assertIsNone(args.input_file)
        self.assertIsNone(args.output_root)

    def test_flags(self):
        args = parse_args(["--items-only", "--input-file", "items.json", "-o", "out"])
        self.assertTrue(args.items_only)
        self.assertEqual(args.input_file, Path("items.json"))
        self.assertEqual(args.output_root, Path("out"))


class TestOrchestrator(unittest.TestCase):
    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.output_root = Path(self.test_dir)

        self.outline_generator = MagicMock(spec=TextGenerator)
        self.outline_generator.generate.return_value = result(json.dumps(OUTLINE_DATA))

        self.chapter_generator = MagicMock(spec=TextGenerator)
        self.chapter_generator.generate.return_value = result("# Chapter\n\nGenerated content")

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def make_context(self, answers, **kwargs):
        return RunContext(
            settings=Settings(api_key="key", output_root=self.output_root),
            outline_generator=self.outline_generator,
            chapter_generator=self.chapter_generator,
            ask=scripted_ask(answers),
            **kwargs,
        )

    def test_full_run(self):
        context = self.make_context(["English", "focus", "tips", "3", "Short"])

        book_folder = BookOrchestrator(context).run()

        self.outline_generator.generate.assert_called_once()
        self.assertEqual(self.chapter_generator.generate.call_count, 3)
        self.assertTrue((book_folder / "README.md").exists())
        self.assertTrue((book_folder / "chapter-3.md").exists())

    def test_items_only_saves_checkpoint(self):
        context = self.make_context(["English", "focus", "tips", "3"], items_only=True)

        items_path = BookOrchestrator(context).run()

        self.assertTrue(items_path.name.startswith("book-items-"))
        self.assertEqual(json.loads(items_path.read_text(encoding="utf-8")), OUTLINE_DATA)
        self.chapter_generator.generate.assert_not_called()
        self.assertEqual(list(self.output_root.glob("book-2*")), [])

    def test_items_only_needs_checkpoint_support(self):
        context = self.make_context([], items_only=True, supports_checkpoint=False)

        with self.assertRaises(ValidationError):
            BookOrchestrator(context).run()

    def test_count_rejected_before_any_call(self):
        for count in ["0", "101"]:
            context = self.make_context(["English", "focus", "tips", count])

            with self.assertRaises(ValidationError):
                BookOrchestrator(context).run()

        self.outline_generator.generate.assert_not_called()
        self.chapter_generator.generate.assert_not_called()

    def test_length_rejected_before_any_call(self):
        context = self.make_context(["English", "focus", "tips", "3", "huge"])

        with self.assertRaises(ValidationError):
            BookOrchestrator(context).run()

        self.outline_generator.generate.assert_not_called()
        self.chapter_generator.generate.assert_not_called()

    def test_resume_from_checkpoint(self):
        items_path = save_outline(BookOutline.model_validate(OUTLINE_DATA), self.output_root)
        context = self.make_context(["Spanish", "tips", "LONG"], input_file=items_path)

        book_folder = BookOrchestrator(context).run()

        self.outline_generator.generate.assert_not_called()
        self.assertEqual(self.chapter_generator.generate.call_count, 3)
        prompt = self.chapter_generator.generate.call_args.kwargs["prompt"]
        self.assertIn("Spanish", prompt)
        self.assertIn("1500-2000 words", prompt)

        data = json.loads((book_folder / "book-structure.json").read_text(encoding="utf-8"))
        self.assertEqual(data, OUTLINE_DATA)

    def test_items_only_ignored_with_checkpoint(self):
        items_path = save_outline(BookOutline.model_validate(OUTLINE_DATA), self.output_root)
        context = self.make_context(
            ["English", "tips", "short"], input_file=items_path, items_only=True
        )

        book_folder = BookOrchestrator(context).run()

        self.assertTrue((book_folder / "chapter-1.md").exists())

    def test_checkpoint_length_rejected_before_any_call(self):
        items_path = save_outline(BookOutline.model_validate(OUTLINE_DATA), self.output_root)
        context = self.make_context(["English", "tips", "epic"], input_file=items_path)

        with self.assertRaises(ValidationError):
            BookOrchestrator(context).run()

        self.chapter_generator.generate.assert_not_called()

    def test_checkpoint_support_disabled(self):
        context = self.make_context(
            [], input_file=self.output_root / "items.json", supports_checkpoint=False
        )

        with self.assertRaises(ValidationError):
            BookOrchestrator(context).run()

    def test_chapter_failure_leaves_no_book(self):
        self.chapter_generator.generate.side_effect = [
            result("one"),
            GenerationError("quota exceeded"),
        ]
        context = self.make_context(["English", "focus", "tips", "3", "medium"])

        with self.assertRaises(GenerationError):
            BookOrchestrator(context).run()

        self.assertEqual(list(self.output_root.iterdir()), [])


class TestMain(unittest.TestCase):
    def setUp(self):
        self.test_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    @patch.dict(os.environ, {}, clear=True)
    @patch('tipbook.main.ask_questionary')
    @patch('tipbook.main.create_generator')
    def test_missing_api_key(self, mock_create_generator, mock_ask):
        stderr = io.StringIO()
        with redirect_stderr(stderr):
            exit_code = main([])

        self.assertEqual(exit_code, 1)
        self.assertIn("GEMINI_API_KEY", stderr.getvalue())
        mock_create_generator.assert_not_called()
        mock_ask.assert_not_called()

    @patch('tipbook.main.ask_questionary')
    @patch('tipbook.main.create_generator')
    def test_items_only(self, mock_create_generator, mock_ask):
        generator = MagicMock(spec=TextGenerator)
        generator.generate.return_value = result(json.dumps(OUTLINE_DATA))
        mock_create_generator.return_value = generator
        mock_ask.side_effect = ["English", "focus", "tips", "3"]

        with patch.dict(os.environ, {"GEMINI_API_KEY": "key"}, clear=True):
            exit_code = main(["--items-only", "--output-root", self.test_dir])

        self.assertEqual(exit_code, 0)
        self.assertEqual(len(list(Path(self.test_dir).glob("book-items-*.json"))), 1)
        generator.generate.assert_called_once()

    @patch('tipbook.main.ask_questionary')
    @patch('tipbook.main.create_generator')
    def test_invalid_count_exits(self, mock_create_generator, mock_ask):
        generator = MagicMock(spec=TextGenerator)
        mock_create_generator.return_value = generator
        mock_ask.side_effect = ["English", "focus", "tips", "500"]

        stderr = io.StringIO()
        with patch.dict(os.environ, {"GEMINI_API_KEY": "key"}, clear=True):
            with redirect_stderr(stderr):
                exit_code = main(["--output-root", self.test_dir])

        self.assertEqual(exit_code, 1)
        self.assertIn("Invalid count", stderr.getvalue())
        generator.generate.assert_not_called()
        self.assertEqual(list(Path(self.test_dir).iterdir()), [])

    @patch('tipbook.main.ask_questionary')
    @patch('tipbook.main.create_generator')
    def test_unreadable_checkpoint_exits(self, mock_create_generator, mock_ask):
        mock_create_generator.return_value = MagicMock(spec=TextGenerator)
        missing = Path(self.test_dir) / "missing.json"

        stderr = io.StringIO()
        with patch.dict(os.environ, {"GEMINI_API_KEY": "key"}, clear=True):
            with redirect_stderr(stderr):
                exit_code = main(["--input-file", str(missing)])

        self.assertEqual(exit_code, 1)
        self.assertIn("missing.json", stderr.getvalue())
        mock_ask.assert_not_called()


if __name__ == '__main__':
    unittest.main()
