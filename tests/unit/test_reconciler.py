import unittest
from pathlib import Path

from llm_file_sorter.models import Batch, BatchState, FileEntry, InferenceOutcome, ParseOutcome
from llm_file_sorter.planning.reconciler import (
    extract_pairs,
    normalize_category,
    parse_llm_json,
    reconcile,
)


def make_batch(*names):
    return Batch("batch-0001", tuple(FileEntry.from_path(Path("/tmp/root") / n) for n in names))


def succeeded(text):
    return InferenceOutcome(batch_id="batch-0001", state=BatchState.SUCCEEDED, text=text, attempts=1)


class TestParseLlmJson(unittest.TestCase):
    def test_plain_json_is_strict(self):
        value, outcome = parse_llm_json('{"a.pdf": "Documents"}')
        self.assertEqual(value, {"a.pdf": "Documents"})
        self.assertEqual(outcome, ParseOutcome.STRICT)

    def test_fenced_json_with_commentary_is_repaired(self):
        text = 'Sure! Here is the result:\n```json\n{"a.pdf": "Documents"}\n```\nLet me know.'
        value, outcome = parse_llm_json(text)
        self.assertEqual(value, {"a.pdf": "Documents"})
        self.assertEqual(outcome, ParseOutcome.REPAIRED)

    def test_trailing_comma_is_repaired(self):
        value, outcome = parse_llm_json('{"a.pdf": "Documents", "b.mp3": "Music",}')
        self.assertEqual(value, {"a.pdf": "Documents", "b.mp3": "Music"})
        self.assertEqual(outcome, ParseOutcome.REPAIRED)

    def test_truncated_json_is_recovered(self):
        value, outcome = parse_llm_json('{"a.pdf": "Documents", "b.mp3": "Mu')
        self.assertEqual(value, {"a.pdf": "Documents"})
        self.assertEqual(outcome, ParseOutcome.REPAIRED)

    def test_truncated_key_with_comma_is_recovered(self):
        value, outcome = parse_llm_json('{"a.pdf": "Documents", "x, y.jpg": "Ima')
        self.assertEqual(value, {"a.pdf": "Documents"})
        self.assertEqual(outcome, ParseOutcome.REPAIRED)

    def test_missing_closing_brace_keeps_last_item(self):
        value, outcome = parse_llm_json('{"a, b.pdf": "Documents", "c.mp3": "Music"')
        self.assertEqual(value, {"a, b.pdf": "Documents", "c.mp3": "Music"})
        self.assertEqual(outcome, ParseOutcome.REPAIRED)

    def test_truncated_record_list_is_recovered(self):
        text = '[{"filename": "q\\"x\\".txt", "category": "Documents"}, {"filename": "b, 1.mp3", "cat'
        value, outcome = parse_llm_json(text)
        self.assertEqual(value, [{"filename": 'q"x".txt', "category": "Documents"}])
        self.assertEqual(outcome, ParseOutcome.REPAIRED)

    def test_prose_fails(self):
        value, outcome = parse_llm_json("I cannot classify these files.")
        self.assertIsNone(value)
        self.assertEqual(outcome, ParseOutcome.FAILED)


class TestExtractPairs(unittest.TestCase):
    def test_mapping(self):
        self.assertEqual(extract_pairs({"a.pdf": "Documents"}), [("a.pdf", "Documents")])

    def test_wrapped_mapping(self):
        self.assertEqual(extract_pairs({"files": {"a.pdf": "Documents"}}), [("a.pdf", "Documents")])

    def test_list_of_records(self):
        parsed = [
            {"filename": "a.pdf", "category": "Documents"},
            {"file": "b.mp3", "label": "Music"},
            {"unrelated": True},
        ]
        self.assertEqual(extract_pairs(parsed), [("a.pdf", "Documents"), ("b.mp3", "Music")])

    def test_unusable_shape(self):
        self.assertIsNone(extract_pairs("Documents"))


class TestNormalizeCategory(unittest.TestCase):
    def test_case_and_whitespace_insensitive(self):
        self.assertEqual(normalize_category(" music "), "Music")
        self.assertEqual(normalize_category("IMAGES"), "Images")

    def test_unknown_label_falls_back(self):
        self.assertEqual(normalize_category("Misc"), "Other")
        self.assertEqual(normalize_category(""), "Other")


class TestReconcile(unittest.TestCase):
    def test_missing_file_defaults_to_other(self):
        batch = make_batch("report.pdf", "song.mp3", "写真.jpg")
        outcome = succeeded('{"report.pdf": "Documents", "song.mp3": "Music"}')

        result = reconcile(batch, outcome)

        self.assertEqual(result.assignments, {
            "report.pdf": "Documents",
            "song.mp3": "Music",
            "写真.jpg": "Other",
        })
        self.assertEqual(result.fallback, ["写真.jpg"])
        self.assertEqual(result.outcome, ParseOutcome.STRICT)

    def test_out_of_taxonomy_label(self):
        result = reconcile(make_batch("a.txt"), succeeded('{"a.txt": "Misc"}'))
        self.assertEqual(result.assignments, {"a.txt": "Other"})
        self.assertEqual(result.fallback, [])

    def test_unknown_filenames_are_reported_not_applied(self):
        batch = make_batch("a.pdf")
        result = reconcile(batch, succeeded('{"a.pdf": "Documents", "ghost.txt": "Code"}'))

        self.assertEqual(result.assignments, {"a.pdf": "Documents"})
        self.assertEqual(result.unmatched, ["ghost.txt"])

    def test_filename_match_is_exact(self):
        result = reconcile(make_batch("Report.PDF"), succeeded('{"report.pdf": "Documents"}'))
        self.assertEqual(result.assignments, {"Report.PDF": "Other"})
        self.assertEqual(result.unmatched, ["report.pdf"])

    def test_failed_inference_labels_whole_batch_other(self):
        batch = make_batch("a.pdf", "b.mp3")
        failed = InferenceOutcome(batch_id="batch-0001", state=BatchState.FAILED, attempts=3, error="down")

        result = reconcile(batch, failed)

        self.assertEqual(result.outcome, ParseOutcome.FAILED)
        self.assertEqual(result.assignments, {"a.pdf": "Other", "b.mp3": "Other"})
        self.assertEqual(result.fallback, ["a.pdf", "b.mp3"])

    def test_unparseable_response_labels_whole_batch_other(self):
        result = reconcile(make_batch("a.pdf"), succeeded("no idea, sorry"))
        self.assertEqual(result.outcome, ParseOutcome.FAILED)
        self.assertEqual(result.assignments, {"a.pdf": "Other"})

    def test_every_file_gets_exactly_one_label(self):
        names = [f"file_{i}.txt" for i in range(10)]
        result = reconcile(make_batch(*names), succeeded('[{"filename": "file_3.txt", "category": "Code"}]'))

        self.assertEqual(list(result.assignments), names)
        self.assertEqual(result.assignments["file_3.txt"], "Code")
        self.assertEqual(len(result.records), 10)


if __name__ == '__main__':
    unittest.main()
