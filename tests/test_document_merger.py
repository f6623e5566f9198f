import json
import unittest
import sys
import os

# Add parent directory to path to import modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from mergesub.document_merger import MergeSettings, merge_documents, render_cues
from mergesub.models import Cue, MergeAction, SourceFile
from mergesub.timecode import split_timecode_line


def srt(*blocks):
    """Builds SRT text from (index, timecode, text) tuples."""
    return "\n".join(f"{i}\n{ts}\n{text}\n" for i, ts, text in blocks)


class TestMergeDocuments(unittest.TestCase):

    def test_two_files(self):
        a = SourceFile("a.srt", srt((1, "00:00:00,000 --> 00:00:01,000", "A")))
        b = SourceFile("b.srt", srt((1, "00:00:00,000 --> 00:00:01,000", "B")))
        result = merge_documents([a, b])
        self.assertEqual(
            result.merged_document,
            "1\n00:00:00,000 --> 00:00:01,000\nA\n\n2\n00:00:01,000 --> 00:00:02,000\nB\n")
        self.assertEqual(result.diagnostics, [])
        self.assertEqual(result.stats.total_input_cues, 2)
        self.assertEqual(result.stats.total_output_cues, 2)
        self.assertEqual(result.stats.parse_issues_count, 0)
        self.assertEqual(result.stats.files_processed, 2)

    def test_three_files_long_transcripts(self):
        files = [
            SourceFile("f1.srt", srt((1, "00:00:00,000 --> 00:28:03,760", "A"))),
            SourceFile("f2.srt", srt((1, "00:00:00,000 --> 00:30:00,000", "B"))),
            SourceFile("f3.srt", srt((1, "00:00:00,000 --> 00:21:46,220", "C"))),
        ]
        result = merge_documents(files)
        self.assertIn("2\n00:28:03,760 --> 00:58:03,760\nB\n", result.merged_document)
        self.assertTrue(result.merged_document.endswith("3\n00:58:03,760 --> 01:19:49,980\nC\n"))
        self.assertEqual(result.diagnostics, [])

    def test_unparseable_timecode_falls_back(self):
        content = srt(
            (1, "00:00:01,000 --> 00:00:02,000", "One"),
            (2, "00:00:0X,000 --> 00:00:04,000", "Two"),
            (3, "00:00:05,000 --> 00:00:06,000", "Three"),
        )
        result = merge_documents([SourceFile("broken.srt", content)])
        self.assertEqual(result.stats.parse_issues_count, 1)
        self.assertEqual(result.stats.total_output_cues, 3)
        self.assertEqual(len(result.diagnostics), 1)

        diagnostic = result.diagnostics[0]
        self.assertIs(diagnostic.action, MergeAction.FALLBACK)
        self.assertEqual(diagnostic.source_file, "broken.srt")
        self.assertEqual(diagnostic.original_index, 2)
        self.assertEqual(diagnostic.original_timecode_line, "00:00:0X,000 --> 00:00:04,000")
        self.assertEqual(diagnostic.final_index, 2)
        self.assertEqual(diagnostic.final_timecode_line, "00:00:02,200 --> 00:00:03,200")
        self.assertEqual(diagnostic.reason, "Unparseable timestamp line")
        self.assertIsNotNone(split_timecode_line(diagnostic.final_timecode_line))
        self.assertIn("2\n00:00:02,200 --> 00:00:03,200\nTwo\n", result.merged_document)

    def test_missing_timecode_reason(self):
        content = "1\nHello\n\n2\n00:00:03,000 --> 00:00:04,000\nWorld\n"
        result = merge_documents([SourceFile("x.srt", content)])
        self.assertEqual(result.diagnostics[0].reason, "Missing timestamp line")
        self.assertEqual(result.diagnostics[0].final_timecode_line, "00:00:00,200 --> 00:00:01,200")

    def test_fallback_end_advances_next_file(self):
        first = SourceFile("first.srt", "1\nno timecode here\n")
        second = SourceFile("second.srt", srt((1, "00:00:00,000 --> 00:00:01,000", "B")))
        result = merge_documents([first, second])
        self.assertIn("2\n00:00:01,200 --> 00:00:02,200\nB\n", result.merged_document)

    def test_fallback_in_later_file_starts_after_offset(self):
        first = SourceFile("first.srt", srt((1, "00:00:00,000 --> 00:00:10,000", "A")))
        second = SourceFile("second.srt", "1\n??? --> ???\nB\n")
        result = merge_documents([first, second])
        start, _ = split_timecode_line(result.diagnostics[0].final_timecode_line)
        self.assertEqual(start, 10200)

    def test_custom_fallback_settings(self):
        result = merge_documents(
            [SourceFile("x.srt", "1\nbad --> line\nA\n")],
            MergeSettings(fallback_gap_ms=50, fallback_duration_ms=300, empty_text_placeholder="..."))
        self.assertEqual(result.diagnostics[0].final_timecode_line, "00:00:00,050 --> 00:00:00,350")

    def test_normalized_line(self):
        content = srt((1, "0:00:01.000-->00:00:02.000", "A"))
        result = merge_documents([SourceFile("n.srt", content)])
        self.assertEqual(len(result.diagnostics), 1)
        self.assertIs(result.diagnostics[0].action, MergeAction.NORMALIZED)
        self.assertEqual(result.diagnostics[0].final_timecode_line, "00:00:01,000 --> 00:00:02,000")
        self.assertIsNone(result.diagnostics[0].reason)
        self.assertEqual(result.stats.parse_issues_count, 0)

    def test_shift_alone_is_not_a_normalization(self):
        a = SourceFile("a.srt", srt((1, "00:00:00,000 --> 00:00:05,000", "A")))
        b = SourceFile("b.srt", srt((1, "00:00:01,000  -->  00:00:02,000", "B")))
        result = merge_documents([a, b])
        self.assertEqual(result.diagnostics, [])
        self.assertIn("00:00:06,000 --> 00:00:07,000", result.merged_document)

    def test_renumbering(self):
        content = srt((5, "00:00:01,000 --> 00:00:02,000", "A"), (9, "00:00:03,000 --> 00:00:04,000", "B"))
        result = merge_documents([SourceFile("r.srt", content)])
        self.assertTrue(result.merged_document.startswith("1\n00:00:01,000"))
        self.assertIn("\n\n2\n00:00:03,000", result.merged_document)

    def test_empty_text_gets_placeholder(self):
        content = "1\n00:00:01,000 --> 00:00:02,000\n\n2\n00:00:03,000 --> 00:00:04,000\nB\n"
        result = merge_documents([SourceFile("e.srt", content)])
        self.assertIn("1\n00:00:01,000 --> 00:00:02,000\n[No text]\n", result.merged_document)

    def test_blank_line_inside_caption_survives(self):
        content = "1\n00:00:01,000 --> 00:00:02,000\nTop\n\nBottom\n\n2\n00:00:03,000 --> 00:00:04,000\nB\n"
        result = merge_documents([SourceFile("b.srt", content)])
        self.assertIn("00:00:01,000 --> 00:00:02,000\nTop\n\nBottom\n", result.merged_document)

    def test_clock_time_in_caption_is_not_a_cue(self):
        content = ("1\n00:00:01,000 --> 00:00:02,000\nAgenda\n\nStart at 10:30:00 sharp\n\n"
                   "2\n00:00:03,000 --> 00:00:04,000\nB\n")
        result = merge_documents([SourceFile("agenda.srt", content)])
        self.assertEqual(result.stats.total_output_cues, 2)
        self.assertEqual(result.stats.parse_issues_count, 0)
        self.assertEqual(result.diagnostics, [])

    def test_oversized_inputs_do_not_abort_the_merge(self):
        content = ("9" * 5000 + "\n\n1\n" + "9" * 5000 + ":00:00,000 --> 00:00:02,000\nA\n\n"
                   "2\n00:00:03,000 --> 00:00:04,000\nB\n")
        result = merge_documents([SourceFile("huge.srt", content)])
        self.assertEqual(result.stats.total_output_cues, 3)
        self.assertEqual(result.stats.parse_issues_count, 2)

    def test_no_files(self):
        result = merge_documents([])
        self.assertEqual(result.merged_document, "")
        self.assertEqual(result.stats.files_processed, 0)
        self.assertEqual(result.stats.total_output_cues, 0)

    def test_mapping_inputs_and_garbage(self):
        result = merge_documents([
            {"name": "m.srt", "content": srt((1, "00:00:00,000 --> 00:00:01,000", "A"))},
            {"content": None},
            42,
        ])
        self.assertEqual(result.stats.files_processed, 3)
        self.assertEqual(result.stats.total_output_cues, 1)

    def test_diagnostics_json(self):
        content = srt((1, "broken --> line", "A"))
        result = merge_documents([SourceFile("j.srt", content)])
        records = json.loads(result.diagnostics_as_json())
        self.assertEqual(len(records), 1)
        self.assertEqual(set(records[0]), {
            "source_file", "original_index", "original_timecode_line", "final_index",
            "final_timecode_line", "action", "reason"})
        self.assertEqual(records[0]["action"], "fallback")


class TestRenderCues(unittest.TestCase):

    def test_render(self):
        text = render_cues([Cue(0, 1000, "A"), Cue(float("nan"), 1, "skip"), Cue(1500, 2500, "")])
        self.assertEqual(text, "1\n00:00:00,000 --> 00:00:01,000\nA\n\n2\n00:00:01,500 --> 00:00:02,500\n[No text]\n")


if __name__ == '__main__':
    unittest.main()
