import tempfile
import unittest
from datetime import date
from decimal import Decimal
from pathlib import Path

import cohort_snapshotter as snapshotter

SNAPSHOT_DATE = date(2026, 2, 8)
ROOT = Path(__file__).resolve().parents[1]


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, sql, params=None):
        self.conn.executed.append((" ".join(sql.split()), params))

    def executemany(self, sql, params_seq):
        self.conn.executed_many.append((" ".join(sql.split()), list(params_seq)))

    def fetchone(self):
        return self.conn.fetchone_results.pop(0)

    def fetchall(self):
        return self.conn.fetchall_results.pop(0)


class FakeConnection:
    def __init__(self, fetchone_results=None, fetchall_results=None):
        self.executed = []
        self.executed_many = []
        self.fetchone_results = list(fetchone_results or [])
        self.fetchall_results = list(fetchall_results or [])
        self.commits = 0

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1


def seeded_meta(program="Foundations"):
    return snapshotter.SnapshotMeta(snapshot_date=SNAPSHOT_DATE, program=program, source="manual", notes="")


class EnsureDbTest(unittest.TestCase):
    def test_creates_tables_in_schema(self):
        conn = FakeConnection()
        snapshotter.ensure_db(conn, "cohort_test")
        statements = [sql for sql, _params in conn.executed]
        self.assertEqual(statements[0], "CREATE SCHEMA IF NOT EXISTS cohort_test")
        self.assertTrue(any("cohort_test.cohort_snapshots (" in sql for sql in statements))
        self.assertTrue(any("ON DELETE CASCADE" in sql for sql in statements))
        self.assertTrue(any("cohort_test.program_summaries" in sql for sql in statements))
        self.assertIn(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_cohort_snapshots_date_program "
            "ON cohort_test.cohort_snapshots(snapshot_date, program)",
            statements,
        )
        self.assertFalse(any(sql.startswith("DROP TABLE") for sql in statements))
        self.assertEqual(conn.commits, 1)

    def test_drop_removes_tables_first(self):
        conn = FakeConnection()
        snapshotter.ensure_db(conn, "cohort_test", drop=True)
        drops = [sql for sql, _params in conn.executed if sql.startswith("DROP TABLE")]
        self.assertEqual(
            drops,
            [
                "DROP TABLE IF EXISTS cohort_test.program_summaries",
                "DROP TABLE IF EXISTS cohort_test.cohort_members",
                "DROP TABLE IF EXISTS cohort_test.cohort_snapshots",
            ],
        )


class CaptureSnapshotTest(unittest.TestCase):
    def test_inserts_snapshot_and_members(self):
        conn = FakeConnection(fetchone_results=[None, (42,)])
        records = snapshotter.seed_roster("Foundations", SNAPSHOT_DATE)
        snapshot_id = snapshotter.capture_snapshot(conn, "cohort_test", seeded_meta(), records)
        self.assertEqual(snapshot_id, 42)
        insert_sql, insert_params = conn.executed[1]
        self.assertIn("INSERT INTO cohort_test.cohort_snapshots", insert_sql)
        self.assertEqual(insert_params, (SNAPSHOT_DATE, "Foundations", "manual", ""))
        members_sql, member_rows = conn.executed_many[0]
        self.assertIn("INSERT INTO cohort_test.cohort_members", members_sql)
        self.assertEqual(len(member_rows), 10)
        self.assertEqual(member_rows[0][0], 42)
        self.assertEqual(member_rows[0][1], "GS-001")
        self.assertEqual(conn.commits, 1)

    def test_refuses_second_capture(self):
        conn = FakeConnection(fetchone_results=[(7,)])
        records = snapshotter.seed_roster("Foundations", SNAPSHOT_DATE)
        with self.assertRaises(ValueError):
            snapshotter.capture_snapshot(conn, "cohort_test", seeded_meta(), records)
        self.assertEqual(conn.executed_many, [])
        self.assertEqual(conn.commits, 0)

    def test_invalid_records_write_nothing(self):
        conn = FakeConnection()
        records = snapshotter.seed_roster("Foundations", SNAPSHOT_DATE)
        records[3].risk_level = "Critical"
        with self.assertRaises(snapshotter.DataQualityError):
            snapshotter.capture_snapshot(conn, "cohort_test", seeded_meta(), records)
        self.assertEqual(conn.executed, [])

    def test_program_mismatch_rejected(self):
        conn = FakeConnection()
        records = snapshotter.seed_roster("Bridge", SNAPSHOT_DATE)
        with self.assertRaises(snapshotter.DataQualityError):
            snapshotter.capture_snapshot(conn, "cohort_test", seeded_meta("Foundations"), records)


class FetchCohortRowsTest(unittest.TestCase):
    def test_builds_rows_from_query(self):
        result = [
            (SNAPSHOT_DATE, "Foundations", "airtable", None, "GS-001", "Alina Booker", "Active", "On Track",
             date(2026, 2, 5), "Low", 92),
            (SNAPSHOT_DATE, "Foundations", "airtable", None, "GS-002", "Mateo Alvarez", "Active", "Needs Follow-Up",
             None, "Medium", 71),
        ]
        conn = FakeConnection(fetchall_results=[result])
        rows = snapshotter.fetch_cohort_rows(conn, "cohort_test", SNAPSHOT_DATE)
        sql, params = conn.executed[0]
        self.assertIn("ORDER BY s.program, m.full_name", sql)
        self.assertEqual(params, (SNAPSHOT_DATE,))
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[0].snapshot.notes, "")
        self.assertEqual(rows[0].record.program, "Foundations")
        self.assertIsNone(rows[1].record.last_touchpoint)
        self.assertEqual(rows[1].record.engagement_score, 71)


class StoreSummariesTest(unittest.TestCase):
    def test_upserts_each_program(self):
        meta = seeded_meta()
        rows = [
            snapshotter.CohortRow(snapshot=meta, record=record)
            for record in snapshotter.seed_roster("Foundations", SNAPSHOT_DATE)
        ]
        summaries = snapshotter.summarize_programs(rows, stale_days=14)
        conn = FakeConnection()
        snapshotter.store_program_summaries(conn, "cohort_test", summaries, 14)
        sql, params = conn.executed_many[0]
        self.assertIn("ON CONFLICT (snapshot_date, program) DO UPDATE", sql)
        self.assertEqual(len(params), 1)
        self.assertEqual(params[0][:9], (SNAPSHOT_DATE, "Foundations", 14, 10, 8, 3, 2, 3, 5))
        self.assertEqual(params[0][11:13], (Decimal("30.0"), Decimal("20.0")))
        self.assertEqual(conn.commits, 1)


class RosterCsvTest(unittest.TestCase):
    def test_loads_sample_roster(self):
        records = snapshotter.load_roster_csv(str(ROOT / "data" / "sample_roster.csv"), "Bridge")
        self.assertEqual(len(records), 6)
        self.assertTrue(all(record.program == "Bridge" for record in records))
        by_id = {record.scholar_id: record for record in records}
        self.assertIsNone(by_id["GS-103"].last_touchpoint)
        self.assertEqual(by_id["GS-104"].full_name, "Diaz, Rafael")
        self.assertEqual(by_id["GS-101"].last_touchpoint, date(2026, 2, 4))
        self.assertEqual(by_id["GS-102"].engagement_score, 55)

    def test_bad_score_and_missing_columns(self):
        with tempfile.TemporaryDirectory() as tmp:
            bad_score = Path(tmp) / "bad_score.csv"
            bad_score.write_text(
                "scholar_id,full_name,status,touchpoint_status,last_touchpoint,risk_level,engagement_score\n"
                "GS-1,Test,Active,On Track,,Low,high\n",
                encoding="utf-8",
            )
            with self.assertRaises(snapshotter.DataQualityError):
                snapshotter.load_roster_csv(str(bad_score), "Foundations")

            missing = Path(tmp) / "missing.csv"
            missing.write_text("scholar_id,full_name\nGS-1,Test\n", encoding="utf-8")
            with self.assertRaises(snapshotter.DataQualityError):
                snapshotter.load_roster_csv(str(missing), "Foundations")


if __name__ == "__main__":
    unittest.main()
