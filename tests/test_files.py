import unittest
import re
from datetime import datetime, timezone, timedelta

from planstudio.exports.files import (
    CsvPayload, deliver, estimate_byte_size, format_byte_size, generate_filename, preview, sanitize_filename,
)
from planstudio.exports.writers import build_document


class TestFilenames(unittest.TestCase):
    def test_generate_filename_fixed_clock(self):
        now = datetime(2024, 5, 1, 9, 30, 15, 123456, tzinfo=timezone.utc)
        self.assertEqual(generate_filename("jira_issues", now=now), "jira_issues_2024-05-01T09-30-15.csv")
        self.assertEqual(generate_filename("x", "txt", now=now), "x_2024-05-01T09-30-15.txt")

    def test_generate_filename_converts_to_utc(self):
        now = datetime(2024, 5, 1, 11, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        self.assertEqual(generate_filename("r", now=now), "r_2024-05-01T09-00-00.csv")

    def test_generate_filename_default_clock(self):
        name = generate_filename("report")
        self.assertRegex(name, r"^report_\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}\.csv$")
        self.assertNotIn(":", name)

    def test_sanitize(self):
        self.assertEqual(sanitize_filename("a__b"), "a_b")
        self.assertEqual(sanitize_filename("_abc_"), "abc")
        self.assertEqual(sanitize_filename("My File!!.csv"), "My_File_.csv")
        self.assertEqual(sanitize_filename("ok-name_1.csv"), "ok-name_1.csv")
        self.assertEqual(sanitize_filename("../etc/passwd"), ".._etc_passwd")
        self.assertEqual(sanitize_filename(""), "")

    def test_sanitize_idempotent(self):
        samples = ["My File!!.csv", "__x__", "a b  c", "___", "ñandú.csv", "_", "a/b\\c:d", "  lead", "x__"]
        for s in samples:
            once = sanitize_filename(s)
            self.assertEqual(sanitize_filename(once), once, s)
            self.assertIsNotNone(re.fullmatch(r"[A-Za-z0-9._-]*", once))


class TestByteSize(unittest.TestCase):
    def test_format(self):
        self.assertEqual(format_byte_size(1536), "1.50 KB")
        self.assertEqual(format_byte_size(500), "500.00 B")
        self.assertEqual(format_byte_size(0), "0.00 B")
        self.assertEqual(format_byte_size(1024), "1.00 KB")
        self.assertEqual(format_byte_size(1048576), "1.00 MB")
        self.assertEqual(format_byte_size(1073741824), "1.00 GB")
        self.assertEqual(format_byte_size(5 * 1024 ** 4), "5120.00 GB")

    def test_estimate(self):
        headers = ["A", "B"]
        rows = [{"A": "x", "B": "y"}] * 3
        sample = len(build_document(headers, rows[:1]).encode("utf-8"))
        self.assertEqual(estimate_byte_size(headers, rows), sample * 3)

    def test_estimate_uses_utf8_bytes(self):
        self.assertEqual(estimate_byte_size(["A"], [{"A": "é"}]), len("A\né".encode("utf-8")))

    def test_estimate_no_rows(self):
        self.assertEqual(estimate_byte_size(["A", "B"], []), 0)


class TestDeliver(unittest.TestCase):
    def test_sink_receives_sanitized_payload(self):
        got = []
        payload = deliver("A,B\nx,é", "my report!.csv", got.append)
        self.assertEqual(len(got), 1)
        self.assertIs(got[0], payload)
        self.assertIsInstance(payload, CsvPayload)
        self.assertEqual(payload.filename, "my_report_.csv")
        self.assertEqual(payload.body, "A,B\nx,é".encode("utf-8"))
        self.assertEqual(payload.size, len(payload.body))
        self.assertTrue(payload.mimetype.startswith("text/csv"))

    def test_sink_errors_propagate(self):
        def broken(_p):
            raise OSError("disk full")

        with self.assertRaises(OSError):
            deliver("A", "a.csv", broken)


class TestPreview(unittest.TestCase):
    def test_preview_limits_rows(self):
        rows = [{"A": i} for i in range(15)]
        out = preview(["A"], rows, max_rows=10)
        self.assertEqual(out["count"], 10)
        self.assertEqual(out["remaining"], 5)
        self.assertEqual(out["rows"][0], {"A": 0})
        self.assertEqual(out["headers"], ["A"])

    def test_preview_small(self):
        out = preview(["A"], [{"A": 1}])
        self.assertEqual(out["count"], 1)
        self.assertEqual(out["remaining"], 0)


if __name__ == '__main__':
    unittest.main()
