import unittest

from athena.sql.classifier import (
    QueryType,
    classify_query,
    is_ctas_query,
    is_ddl_query,
    is_select_query,
)


class ClassifierTests(unittest.TestCase):
    def test_ddl_keywords(self):
        for query in [
            "ALTER TABLE t ADD COLUMNS (c int)",
            "create database d",
            "DESCRIBE t",
            "drop table t",
            "MSCK REPAIR TABLE t",
            "show tables",
        ]:
            with self.subTest(query=query):
                self.assertEqual(classify_query(query), QueryType.DDL)

    def test_select_is_case_insensitive(self):
        self.assertEqual(classify_query("SELECT 1"), QueryType.SELECT)
        self.assertEqual(classify_query("select 1"), QueryType.SELECT)
        self.assertEqual(classify_query("SeLeCt * from t"), QueryType.SELECT)

    def test_leading_whitespace_is_ignored(self):
        self.assertEqual(classify_query("  \n\tSELECT 1"), QueryType.SELECT)
        self.assertEqual(classify_query("\n  show tables"), QueryType.DDL)

    def test_user_ctas_classifies_as_ddl(self):
        query = "CREATE TABLE t WITH (format='PARQUET') AS SELECT * FROM s"
        self.assertEqual(classify_query(query), QueryType.DDL)
        self.assertTrue(is_ddl_query(query))
        self.assertFalse(is_ctas_query(query))

    def test_ctas_rule_matches_when_ddl_rule_is_absent(self):
        from athena.sql.classifier import CLASSIFICATION_RULES

        rules = [rule for rule in CLASSIFICATION_RULES if rule[0] != QueryType.DDL]
        query = "CREATE TABLE t AS\nSELECT *\nFROM s"
        self.assertEqual(classify_query(query, rules), QueryType.CTAS)

    def test_unknown_statements(self):
        for query in [
            "INSERT INTO t VALUES (1)",
            "WITH x AS (SELECT 1) SELECT * FROM x",
            "EXPLAIN SELECT 1",
            "",
            "-- comment\nSELECT 1",
        ]:
            with self.subTest(query=query):
                self.assertEqual(classify_query(query), QueryType.UNKNOWN)

    def test_keyword_must_start_the_text(self):
        self.assertEqual(classify_query("x SELECT 1"), QueryType.UNKNOWN)
        self.assertFalse(is_select_query("(SELECT 1)"))

    def test_helpers(self):
        self.assertTrue(is_select_query("SELECT 1"))
        self.assertFalse(is_select_query("SHOW TABLES"))
        self.assertTrue(is_ddl_query("DROP TABLE x"))
