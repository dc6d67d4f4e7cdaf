import pickle
import unittest

from athena.sql.types import ResultMode, Row


class RowTests(unittest.TestCase):
    def test_row_class_creates_rows(self):
        ResultRow = Row("id", "name")
        row = ResultRow(1, "a")

        self.assertEqual(tuple(row), (1, "a"))
        self.assertEqual(row.id, 1)
        self.assertEqual(row["name"], "a")
        self.assertEqual(row[0], 1)
        self.assertEqual(repr(row), "Row(id=1, name='a')")
        self.assertIn("name", row)

    def test_kwargs_row(self):
        row = Row(name="Alice", age=11)
        self.assertEqual(row.asDict(), {"name": "Alice", "age": 11})

    def test_duplicate_column_names(self):
        row = Row("a", "a")(1, 2)
        self.assertEqual(tuple(row), (1, 2))
        self.assertEqual(row.a, 1)

    def test_rows_are_read_only(self):
        row = Row("a")(1)
        with self.assertRaises(RuntimeError):
            row.a = 2

    def test_unknown_field(self):
        row = Row("a")(1)
        with self.assertRaises(AttributeError):
            row.b

    def test_too_many_values(self):
        with self.assertRaises(ValueError):
            Row("a")(1, 2)

    def test_pickle(self):
        row = Row("a", "b")(1, None)
        restored = pickle.loads(pickle.dumps(row))
        self.assertEqual(restored, row)
        self.assertEqual(restored.b, None)

    def test_as_dict_recursive(self):
        inner = Row(x=1)
        outer = Row(inner=inner, items=[inner])
        self.assertEqual(
            outer.asDict(recursive=True), {"inner": {"x": 1}, "items": [{"x": 1}]}
        )


class ResultModeTests(unittest.TestCase):
    def test_parse(self):
        self.assertEqual(ResultMode.parse("dl"), ResultMode.DOWNLOAD)
        self.assertEqual(ResultMode.parse("GZIP"), ResultMode.GZIP_DOWNLOAD)
        self.assertEqual(ResultMode.parse(ResultMode.API), ResultMode.API)
        self.assertIsNone(ResultMode.parse("csv"))
        self.assertIsNone(ResultMode.parse(None))
