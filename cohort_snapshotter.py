#!/usr/bin/env python3
import argparse
import csv
import io
import os
import re
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

DEFAULT_DB_SCHEMA = "cohort_snapshotter"
DEFAULT_PROGRAM = "Foundations"
DEFAULT_STALE_DAYS = 14

STATUSES = {"Active", "Leave of Absence", "Alumni", "Inactive", "Withdrawn"}
RISK_LEVELS = ("High", "Medium", "Low")
FOLLOW_UP_STATUSES = {"Needs Follow-Up", "Escalated"}

REPORT_HEADER = [
    "snapshot_date",
    "program",
    "source",
    "notes",
    "scholar_id",
    "full_name",
    "status",
    "touchpoint_status",
    "last_touchpoint",
    "risk_level",
    "engagement_score",
]

SUMMARY_HEADER = [
    "snapshot_date",
    "program",
    "total_members",
    "active_members",
    "needs_followup_members",
    "high_risk_members",
    "medium_risk_members",
    "low_risk_members",
    "avg_engagement_score",
    "stale_touchpoints",
    "pct_needs_followup",
    "pct_high_risk",
]

ROSTER_FIELDS = [
    "scholar_id",
    "full_name",
    "status",
    "touchpoint_status",
    "last_touchpoint",
    "risk_level",
    "engagement_score",
]


class DataQualityError(ValueError):
    pass


@dataclass
class AppConfig:
    dsn: str
    schema: str

    @classmethod
    def from_env(cls, schema: str) -> "AppConfig":
        dsn = resolve_db_dsn()
        if not dsn:
            raise SystemExit(
                "Database env vars missing. Set GS_DB_DSN or GS_DB_HOST/GS_DB_NAME/GS_DB_USER/GS_DB_PASSWORD "
                "(or PGHOST/PGDATABASE/PGUSER/PGPASSWORD)."
            )
        return cls(dsn=dsn, schema=validate_schema_name(schema))


@dataclass
class SnapshotMeta:
    snapshot_date: date
    program: str
    source: str
    notes: str


@dataclass
class ScholarRecord:
    scholar_id: str
    full_name: str
    program: str
    status: str
    touchpoint_status: str
    last_touchpoint: Optional[date]
    risk_level: str
    engagement_score: int


@dataclass
class CohortRow:
    snapshot: SnapshotMeta
    record: ScholarRecord


@dataclass
class ProgramSummary:
    snapshot_date: date
    program: str
    total_members: int
    active_members: int
    needs_followup_members: int
    high_risk: int
    medium_risk: int
    low_risk: int
    avg_engagement_score: Optional[float]
    stale_touchpoints: int
    pct_needs_followup: str
    pct_high_risk: str


def format_date(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def parse_date(value: str) -> date:
    parts = (value or "").strip().split("-")
    if len(parts) != 3 or not all(part.isascii() and part.isdigit() for part in parts):
        raise ValueError(f"Invalid date format: {value}")
    # calendar checks (month 13, Feb 30) come from date() itself
    try:
        return date(*(int(part) for part in parts))
    except (ValueError, OverflowError) as exc:
        raise ValueError(f"Invalid date format: {value}") from exc


def round_one(value: Decimal) -> str:
    return str(value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def format_percent(numerator: int, denominator: int) -> str:
    if denominator == 0:
        return "0.0"
    return round_one(Decimal(numerator) * 100 / Decimal(denominator))


def format_score(value: Optional[float]) -> str:
    if value is None:
        return ""
    return round_one(Decimal(repr(value)))


def validate_schema_name(schema: str) -> str:
    if not re.match(r"^[A-Za-z_][A-Za-z0-9_]*$", schema):
        raise SystemExit("Invalid schema name. Use letters, numbers, and underscores only.")
    return schema


def validate_records(records: Sequence[ScholarRecord]) -> None:
    seen = set()
    for record in records:
        if record.status not in STATUSES:
            raise DataQualityError(f"Unrecognized status '{record.status}' for scholar {record.scholar_id}.")
        if record.risk_level not in RISK_LEVELS:
            raise DataQualityError(f"Unrecognized risk level '{record.risk_level}' for scholar {record.scholar_id}.")
        key = (record.program, record.scholar_id)
        if key in seen:
            raise DataQualityError(f"Duplicate scholar id {record.scholar_id} in program {record.program}.")
        seen.add(key)


def stale_cutoff(snapshot_date: date, stale_days: int) -> Optional[date]:
    # None when the cutoff falls before date.min: no dated touchpoint is that old
    try:
        return snapshot_date - timedelta(days=stale_days)
    except OverflowError:
        return None


def is_stale(last_touchpoint: Optional[date], stale_date: Optional[date]) -> bool:
    if last_touchpoint is None:
        return True
    return stale_date is not None and last_touchpoint <= stale_date


def summarize_programs(rows: Sequence[CohortRow], stale_days: int) -> List[ProgramSummary]:
    if stale_days < 0:
        raise ValueError("stale_days must be zero or greater.")
    if not rows:
        return []
    snapshot_dates = {row.snapshot.snapshot_date for row in rows}
    if len(snapshot_dates) != 1:
        raise ValueError("Rows span more than one snapshot date.")
    snapshot_date = snapshot_dates.pop()
    validate_records([row.record for row in rows])
    stale_date = stale_cutoff(snapshot_date, stale_days)

    groups: Dict[str, List[ScholarRecord]] = {}
    for row in rows:
        groups.setdefault(row.record.program, []).append(row.record)

    summaries: List[ProgramSummary] = []
    for program in sorted(groups):
        members = groups[program]
        total = len(members)
        needs_followup = sum(1 for member in members if member.touchpoint_status == "Needs Follow-Up")
        risk_counts = {level: 0 for level in RISK_LEVELS}
        for member in members:
            risk_counts[member.risk_level] += 1
        avg_engagement = sum(member.engagement_score for member in members) / total if total else None
        summaries.append(
            ProgramSummary(
                snapshot_date=snapshot_date,
                program=program,
                total_members=total,
                active_members=sum(1 for member in members if member.status == "Active"),
                needs_followup_members=needs_followup,
                high_risk=risk_counts["High"],
                medium_risk=risk_counts["Medium"],
                low_risk=risk_counts["Low"],
                avg_engagement_score=avg_engagement,
                stale_touchpoints=sum(1 for member in members if is_stale(member.last_touchpoint, stale_date)),
                pct_needs_followup=format_percent(needs_followup, total),
                pct_high_risk=format_percent(risk_counts["High"], total),
            )
        )
    return summaries


def render_csv(header: List[str], rows: List[List[object]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def format_report_csv(rows: Sequence[CohortRow]) -> str:
    data = []
    for row in rows:
        record = row.record
        data.append(
            [
                format_date(row.snapshot.snapshot_date),
                row.snapshot.program,
                row.snapshot.source,
                row.snapshot.notes,
                record.scholar_id,
                record.full_name,
                record.status,
                record.touchpoint_status,
                format_date(record.last_touchpoint) if record.last_touchpoint else "",
                record.risk_level,
                record.engagement_score,
            ]
        )
    return render_csv(REPORT_HEADER, data)


def format_summary_csv(summaries: Sequence[ProgramSummary]) -> str:
    data = [
        [
            format_date(summary.snapshot_date),
            summary.program,
            summary.total_members,
            summary.active_members,
            summary.needs_followup_members,
            summary.high_risk,
            summary.medium_risk,
            summary.low_risk,
            format_score(summary.avg_engagement_score),
            summary.stale_touchpoints,
            summary.pct_needs_followup,
            summary.pct_high_risk,
        ]
        for summary in summaries
    ]
    return render_csv(SUMMARY_HEADER, data)


def markdown_cell(value: object) -> str:
    return str(value).replace("|", "\\|")


def watchlist_reasons(record: ScholarRecord, stale_date: Optional[date]) -> List[str]:
    reasons: List[str] = []
    if record.risk_level == "High":
        reasons.append("high risk")
    if record.touchpoint_status in FOLLOW_UP_STATUSES:
        reasons.append(record.touchpoint_status.lower())
    if is_stale(record.last_touchpoint, stale_date):
        reasons.append("stale touchpoint")
    return reasons


def format_brief_markdown(
    summaries: Sequence[ProgramSummary],
    rows: Sequence[CohortRow],
    snapshot_date: date,
    stale_days: int,
) -> str:
    stale_date = stale_cutoff(snapshot_date, stale_days)
    lines = [f"# Cohort Health Brief: {format_date(snapshot_date)}", ""]
    if not summaries:
        lines.append("No snapshot data captured for this date.")
        return "\n".join(lines) + "\n"

    total = sum(summary.total_members for summary in summaries)
    active = sum(summary.active_members for summary in summaries)
    needs_followup = sum(summary.needs_followup_members for summary in summaries)
    high_risk = sum(summary.high_risk for summary in summaries)
    stale = sum(summary.stale_touchpoints for summary in summaries)
    engagement_total = sum(row.record.engagement_score for row in rows)
    if stale_date is None:
        lines.append(f"Stale threshold: {stale_days} days (only scholars with no recorded touchpoint).")
    else:
        lines.append(
            f"Stale threshold: {stale_days} days (last touchpoint on or before {format_date(stale_date)}, "
            "or none recorded)."
        )
    lines.append("")
    lines.append("## Headline")
    lines.append("")
    lines.append(f"- Scholars tracked: {total} across {len(summaries)} program(s)")
    lines.append(f"- Active: {active}")
    lines.append(f"- Needs follow-up: {needs_followup} ({format_percent(needs_followup, total)}%)")
    lines.append(f"- High risk: {high_risk} ({format_percent(high_risk, total)}%)")
    lines.append(f"- Stale touchpoints: {stale} ({format_percent(stale, total)}%)")
    if rows:
        lines.append(f"- Average engagement: {format_score(engagement_total / len(rows))}")
    lines.append("")

    lines.append("## Programs")
    lines.append("")
    lines.append(
        "| Program | Total | Active | Needs Follow-Up | High | Medium | Low | Avg Engagement | Stale "
        "| % Follow-Up | % High Risk |"
    )
    lines.append("| --- | ---: | ---: | ---: | ---: | ---: | ---: | ---: | ---: | ---: | ---: |")
    for summary in summaries:
        cells = [
            summary.program,
            summary.total_members,
            summary.active_members,
            summary.needs_followup_members,
            summary.high_risk,
            summary.medium_risk,
            summary.low_risk,
            format_score(summary.avg_engagement_score) or "n/a",
            summary.stale_touchpoints,
            f"{summary.pct_needs_followup}%",
            f"{summary.pct_high_risk}%",
        ]
        lines.append("| " + " | ".join(markdown_cell(cell) for cell in cells) + " |")
    lines.append("")

    lines.append("## Follow-up watchlist")
    lines.append("")
    watchlist = []
    for row in sorted(rows, key=lambda item: (item.record.program, item.record.full_name, item.record.scholar_id)):
        reasons = watchlist_reasons(row.record, stale_date)
        if reasons:
            watchlist.append((row.record, reasons))
    if not watchlist:
        lines.append("- None")
    for record, reasons in watchlist:
        last_touch = format_date(record.last_touchpoint) if record.last_touchpoint else "never"
        lines.append(
            f"- {markdown_cell(record.full_name)} ({markdown_cell(record.scholar_id)}) "
            f"[{markdown_cell(record.program)}] {record.risk_level} risk, {record.touchpoint_status}, "
            f"last touchpoint {last_touch}: {', '.join(reasons)}"
        )
    return "\n".join(lines) + "\n"


def seed_roster(program: str, snapshot_date: date) -> List[ScholarRecord]:
    roster = [
        ("GS-001", "Alina Booker", "Active", "On Track", 3, "Low", 92),
        ("GS-002", "Mateo Alvarez", "Active", "Needs Follow-Up", 12, "Medium", 71),
        ("GS-003", "Priya Shah", "Active", "Escalated", 20, "High", 58),
        ("GS-004", "Jordan Kim", "Leave of Absence", "Paused", 30, "Medium", 63),
        ("GS-005", "Sofia Ramirez", "Active", "On Track", 5, "Low", 88),
        ("GS-006", "Jalen Morris", "Active", "Needs Follow-Up", 15, "High", 61),
        ("GS-007", "Noor Hassan", "Active", "On Track", 2, "Low", 95),
        ("GS-008", "Dante Brooks", "Alumni", "Completed", 40, "Low", 78),
        ("GS-009", "Marisol Vega", "Active", "Needs Follow-Up", 9, "Medium", 74),
        ("GS-010", "Theo Nwosu", "Active", "On Track", 1, "Low", 97),
    ]
    return [
        ScholarRecord(
            scholar_id=scholar_id,
            full_name=full_name,
            program=program,
            status=status,
            touchpoint_status=touchpoint_status,
            last_touchpoint=snapshot_date - timedelta(days=days_ago),
            risk_level=risk_level,
            engagement_score=score,
        )
        for scholar_id, full_name, status, touchpoint_status, days_ago, risk_level, score in roster
    ]


def load_roster_csv(path: str, program: str) -> List[ScholarRecord]:
    records: List[ScholarRecord] = []
    with open(path, newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        missing = [field for field in ROSTER_FIELDS if field not in (reader.fieldnames or [])]
        if missing:
            raise DataQualityError(f"Roster CSV is missing columns: {', '.join(missing)}")
        for line_no, row in enumerate(reader, start=2):
            last_touch = (row.get("last_touchpoint") or "").strip()
            score = (row.get("engagement_score") or "").strip()
            try:
                engagement_score = int(score)
            except ValueError as exc:
                raise DataQualityError(f"Line {line_no}: engagement_score '{score}' is not an integer.") from exc
            records.append(
                ScholarRecord(
                    scholar_id=(row.get("scholar_id") or "").strip(),
                    full_name=(row.get("full_name") or "").strip(),
                    program=program,
                    status=(row.get("status") or "").strip(),
                    touchpoint_status=(row.get("touchpoint_status") or "").strip(),
                    last_touchpoint=parse_date(last_touch) if last_touch else None,
                    risk_level=(row.get("risk_level") or "").strip(),
                    engagement_score=engagement_score,
                )
            )
    return records


def resolve_db_dsn() -> Optional[str]:
    explicit = os.getenv("GS_DB_DSN") or os.getenv("DATABASE_URL")
    if explicit:
        return explicit
    host = os.getenv("GS_DB_HOST") or os.getenv("PGHOST")
    port = os.getenv("GS_DB_PORT") or os.getenv("PGPORT") or "5432"
    name = os.getenv("GS_DB_NAME") or os.getenv("PGDATABASE")
    user = os.getenv("GS_DB_USER") or os.getenv("PGUSER")
    password = os.getenv("GS_DB_PASSWORD") or os.getenv("PGPASSWORD")
    if not all([host, name, user, password]):
        return None
    sslmode = os.getenv("GS_DB_SSLMODE", "require")
    return f"postgresql://{user}:{password}@{host}:{port}/{name}?sslmode={sslmode}"


def require_psycopg() -> "module":
    try:
        import psycopg  # type: ignore
    except ImportError as exc:
        raise SystemExit("psycopg is required. Install with: pip install psycopg[binary]") from exc
    return psycopg


@contextmanager
def open_store(config: AppConfig) -> Iterator["object"]:
    psycopg = require_psycopg()
    try:
        with psycopg.connect(config.dsn) as conn:
            yield conn
    except psycopg.Error as exc:
        raise SystemExit(f"Error: {exc}") from exc


def ensure_db(conn: "object", schema: str, drop: bool = False) -> None:
    with conn.cursor() as cur:
        cur.execute(f"CREATE SCHEMA IF NOT EXISTS {schema}")
        if drop:
            cur.execute(f"DROP TABLE IF EXISTS {schema}.program_summaries")
            cur.execute(f"DROP TABLE IF EXISTS {schema}.cohort_members")
            cur.execute(f"DROP TABLE IF EXISTS {schema}.cohort_snapshots")
        cur.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {schema}.cohort_snapshots (
                id SERIAL PRIMARY KEY,
                snapshot_date DATE NOT NULL,
                program TEXT NOT NULL,
                source TEXT NOT NULL,
                notes TEXT DEFAULT '',
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """
        )
        cur.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {schema}.cohort_members (
                id SERIAL PRIMARY KEY,
                snapshot_id INTEGER NOT NULL REFERENCES {schema}.cohort_snapshots(id) ON DELETE CASCADE,
                scholar_id TEXT NOT NULL,
                full_name TEXT NOT NULL,
                status TEXT NOT NULL,
                touchpoint_status TEXT NOT NULL,
                last_touchpoint DATE,
                risk_level TEXT NOT NULL,
                engagement_score INTEGER NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """
        )
        cur.execute(
            f"CREATE INDEX IF NOT EXISTS idx_cohort_members_snapshot ON {schema}.cohort_members(snapshot_id)"
        )
        cur.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_cohort_snapshots_date_program "
            f"ON {schema}.cohort_snapshots(snapshot_date, program)"
        )
        cur.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {schema}.program_summaries (
                id SERIAL PRIMARY KEY,
                snapshot_date DATE NOT NULL,
                program TEXT NOT NULL,
                stale_days INTEGER NOT NULL,
                total_members INTEGER NOT NULL,
                active_members INTEGER NOT NULL,
                needs_followup_members INTEGER NOT NULL,
                high_risk_members INTEGER NOT NULL,
                medium_risk_members INTEGER NOT NULL,
                low_risk_members INTEGER NOT NULL,
                avg_engagement_score DOUBLE PRECISION,
                stale_touchpoints INTEGER NOT NULL,
                pct_needs_followup NUMERIC(4, 1) NOT NULL,
                pct_high_risk NUMERIC(4, 1) NOT NULL,
                generated_at TIMESTAMP NOT NULL,
                UNIQUE (snapshot_date, program)
            )
            """
        )
    conn.commit()


def capture_snapshot(conn: "object", schema: str, meta: SnapshotMeta, records: Sequence[ScholarRecord]) -> int:
    validate_records(records)
    for record in records:
        if record.program != meta.program:
            raise DataQualityError(
                f"Scholar {record.scholar_id} belongs to {record.program}, not snapshot program {meta.program}."
            )
    with conn.cursor() as cur:
        cur.execute(
            f"SELECT id FROM {schema}.cohort_snapshots WHERE snapshot_date = %s AND program = %s",
            (meta.snapshot_date, meta.program),
        )
        if cur.fetchone() is not None:
            raise ValueError(
                f"Snapshot already captured for {meta.program} on {format_date(meta.snapshot_date)}."
            )
        cur.execute(
            f"""
            INSERT INTO {schema}.cohort_snapshots (snapshot_date, program, source, notes)
            VALUES (%s, %s, %s, %s)
            RETURNING id
            """,
            (meta.snapshot_date, meta.program, meta.source, meta.notes),
        )
        snapshot_id = cur.fetchone()[0]
        cur.executemany(
            f"""
            INSERT INTO {schema}.cohort_members (
                snapshot_id,
                scholar_id,
                full_name,
                status,
                touchpoint_status,
                last_touchpoint,
                risk_level,
                engagement_score
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """,
            [
                (
                    snapshot_id,
                    record.scholar_id,
                    record.full_name,
                    record.status,
                    record.touchpoint_status,
                    record.last_touchpoint,
                    record.risk_level,
                    record.engagement_score,
                )
                for record in records
            ],
        )
    conn.commit()
    return snapshot_id


def fetch_cohort_rows(conn: "object", schema: str, snapshot_date: date) -> List[CohortRow]:
    with conn.cursor() as cur:
        cur.execute(
            f"""
            SELECT s.snapshot_date,
                   s.program,
                   s.source,
                   s.notes,
                   m.scholar_id,
                   m.full_name,
                   m.status,
                   m.touchpoint_status,
                   m.last_touchpoint,
                   m.risk_level,
                   m.engagement_score
            FROM {schema}.cohort_snapshots s
            JOIN {schema}.cohort_members m ON s.id = m.snapshot_id
            WHERE s.snapshot_date = %s
            ORDER BY s.program, m.full_name
            """,
            (snapshot_date,),
        )
        results = cur.fetchall()
    rows: List[CohortRow] = []
    for (
        row_date,
        program,
        source,
        notes,
        scholar_id,
        full_name,
        status,
        touchpoint_status,
        last_touchpoint,
        risk_level,
        engagement_score,
    ) in results:
        rows.append(
            CohortRow(
                snapshot=SnapshotMeta(snapshot_date=row_date, program=program, source=source, notes=notes or ""),
                record=ScholarRecord(
                    scholar_id=scholar_id,
                    full_name=full_name,
                    program=program,
                    status=status,
                    touchpoint_status=touchpoint_status,
                    last_touchpoint=last_touchpoint,
                    risk_level=risk_level,
                    engagement_score=int(engagement_score),
                ),
            )
        )
    return rows


def store_program_summaries(
    conn: "object",
    schema: str,
    summaries: Sequence[ProgramSummary],
    stale_days: int,
) -> None:
    generated_at = datetime.now().replace(microsecond=0)
    with conn.cursor() as cur:
        cur.executemany(
            f"""
            INSERT INTO {schema}.program_summaries (
                snapshot_date,
                program,
                stale_days,
                total_members,
                active_members,
                needs_followup_members,
                high_risk_members,
                medium_risk_members,
                low_risk_members,
                avg_engagement_score,
                stale_touchpoints,
                pct_needs_followup,
                pct_high_risk,
                generated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (snapshot_date, program) DO UPDATE SET
                stale_days = EXCLUDED.stale_days,
                total_members = EXCLUDED.total_members,
                active_members = EXCLUDED.active_members,
                needs_followup_members = EXCLUDED.needs_followup_members,
                high_risk_members = EXCLUDED.high_risk_members,
                medium_risk_members = EXCLUDED.medium_risk_members,
                low_risk_members = EXCLUDED.low_risk_members,
                avg_engagement_score = EXCLUDED.avg_engagement_score,
                stale_touchpoints = EXCLUDED.stale_touchpoints,
                pct_needs_followup = EXCLUDED.pct_needs_followup,
                pct_high_risk = EXCLUDED.pct_high_risk,
                generated_at = EXCLUDED.generated_at
            """,
            [
                (
                    summary.snapshot_date,
                    summary.program,
                    stale_days,
                    summary.total_members,
                    summary.active_members,
                    summary.needs_followup_members,
                    summary.high_risk,
                    summary.medium_risk,
                    summary.low_risk,
                    summary.avg_engagement_score,
                    summary.stale_touchpoints,
                    Decimal(summary.pct_needs_followup),
                    Decimal(summary.pct_high_risk),
                    generated_at,
                )
                for summary in summaries
            ],
        )
    conn.commit()


def write_output(path: str, text: str) -> None:
    if path == "-":
        sys.stdout.write(text)
        return
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", newline="", encoding="utf-8") as handle:
        handle.write(text)


def resolve_snapshot_date(value: Optional[str]) -> date:
    if not value:
        return date.today()
    try:
        return parse_date(value)
    except ValueError as exc:
        raise SystemExit("Invalid --date format. Use YYYY-MM-DD.") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Group Scholar Cohort Snapshotter: capture cohort health snapshots and build reports."
    )
    parser.add_argument("--schema", default=DEFAULT_DB_SCHEMA, help="Postgres schema to use for this project")
    subparsers = parser.add_subparsers(dest="command")

    init = subparsers.add_parser("init", help="Create the snapshot tables")
    init.add_argument("--drop", action="store_true", help="Drop existing tables first")

    snapshot = subparsers.add_parser("snapshot", help="Capture a cohort snapshot")
    snapshot.add_argument("--source", default="manual", help="Data source tag (e.g. airtable, export)")
    snapshot.add_argument("--date", help="Snapshot date (YYYY-MM-DD), defaults to today")
    snapshot.add_argument("--program", default=DEFAULT_PROGRAM, help="Program or cohort name")
    snapshot.add_argument("--notes", default="", help="Optional snapshot notes")
    snapshot.add_argument("--input", help="Roster CSV to capture instead of the built-in seed roster")

    report = subparsers.add_parser("report", help="Export the raw snapshot rows to CSV")
    report.add_argument("--date", help="Snapshot date (YYYY-MM-DD), defaults to today")
    report.add_argument(
        "--out",
        default=str(Path("reports") / "cohort_snapshot_report.csv"),
        help="Output CSV path, or - for stdout",
    )

    for name, default_out, help_text in (
        ("summary", "cohort_summary_report.csv", "Export per-program summary metrics to CSV"),
        ("brief", "cohort_brief.md", "Write a markdown leadership brief"),
    ):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument("--date", help="Snapshot date (YYYY-MM-DD), defaults to today")
        command.add_argument("--out", default=str(Path("reports") / default_out), help="Output path, or - for stdout")
        command.add_argument(
            "--stale-days",
            type=int,
            default=DEFAULT_STALE_DAYS,
            help="Days since last touchpoint to count as stale",
        )
        command.add_argument("--db-write", action="store_true", help="Store the computed summaries in Postgres")
    return parser


def run_init(config: AppConfig, args: argparse.Namespace) -> None:
    with open_store(config) as conn:
        ensure_db(conn, config.schema, drop=args.drop)
    print(f"Initialized schema {config.schema}.")


def run_snapshot(config: AppConfig, args: argparse.Namespace) -> None:
    meta = SnapshotMeta(
        snapshot_date=resolve_snapshot_date(args.date),
        program=args.program,
        source=args.source,
        notes=args.notes,
    )
    if args.input:
        records = load_roster_csv(args.input, meta.program)
    else:
        records = seed_roster(meta.program, meta.snapshot_date)
    with open_store(config) as conn:
        capture_snapshot(conn, config.schema, meta, records)
    print(f"Captured snapshot {format_date(meta.snapshot_date)} for {meta.program}.")


def run_report(config: AppConfig, args: argparse.Namespace) -> None:
    snapshot_date = resolve_snapshot_date(args.date)
    with open_store(config) as conn:
        rows = fetch_cohort_rows(conn, config.schema, snapshot_date)
    write_output(args.out, format_report_csv(rows))
    if args.out != "-":
        print(f"Report written to {args.out}.")


def run_summary(config: AppConfig, args: argparse.Namespace) -> None:
    snapshot_date = resolve_snapshot_date(args.date)
    with open_store(config) as conn:
        rows = fetch_cohort_rows(conn, config.schema, snapshot_date)
        summaries = summarize_programs(rows, args.stale_days)
        if args.db_write:
            store_program_summaries(conn, config.schema, summaries, args.stale_days)
    write_output(args.out, format_summary_csv(summaries))
    if args.out != "-":
        print(f"Summary report written to {args.out}.")


def run_brief(config: AppConfig, args: argparse.Namespace) -> None:
    snapshot_date = resolve_snapshot_date(args.date)
    with open_store(config) as conn:
        rows = fetch_cohort_rows(conn, config.schema, snapshot_date)
        summaries = summarize_programs(rows, args.stale_days)
        if args.db_write:
            store_program_summaries(conn, config.schema, summaries, args.stale_days)
    write_output(args.out, format_brief_markdown(summaries, rows, snapshot_date, args.stale_days))
    if args.out != "-":
        print(f"Brief written to {args.out}.")


COMMANDS = {
    "init": run_init,
    "snapshot": run_snapshot,
    "report": run_report,
    "summary": run_summary,
    "brief": run_brief,
}


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return
    if getattr(args, "stale_days", 0) < 0:
        raise SystemExit("--stale-days must be zero or greater.")
    config = AppConfig.from_env(args.schema)
    try:
        COMMANDS[args.command](config, args)
    except (ValueError, OSError) as exc:
        raise SystemExit(f"Error: {exc}") from exc


if __name__ == "__main__":
    main()
