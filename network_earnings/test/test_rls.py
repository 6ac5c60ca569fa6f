from sqlalchemy import create_engine, inspect
from sqlmodel import SQLModel
from typer.testing import CliRunner

from network_earnings.cli import app as cli_app
from network_earnings.core.config import settings
from network_earnings.core.db import OPTIONAL_TABLES, create_all_tables
from network_earnings.core.rls import apply_policies, check_schema, policy_statements


def test_policy_statements_cover_every_table():
    statements = policy_statements()
    enabled = {s.split()[2] for s in statements if s.endswith("ENABLE ROW LEVEL SECURITY")}
    assert enabled == {"campaigns", "leads", "earnings", "payouts", "payout_methods", "disputes", "activities"}

    insert = next(s for s in statements if s.startswith('CREATE POLICY "leads_insert"'))
    assert "FOR INSERT WITH CHECK" in insert
    select_leads = next(s for s in statements if s.startswith('CREATE POLICY "leads_select"'))
    assert "auth.uid()" in select_leads
    assert "USING" in select_leads


def test_policy_statements_drop_before_create():
    statements = policy_statements()
    drop = statements.index('DROP POLICY IF EXISTS "campaigns_select" ON campaigns')
    create = next(i for i, s in enumerate(statements) if s.startswith('CREATE POLICY "campaigns_select"'))
    assert drop < create


def test_optional_tables_can_be_left_out():
    statements = policy_statements(include_optional=False)
    assert statements
    assert not any(table in s for s in statements for table in OPTIONAL_TABLES)


def test_apply_policies_skips_sqlite(engine):
    result = apply_policies(engine)
    assert result.skipped is True
    assert result.applied == 0


def test_check_schema_on_fresh_database(engine):
    report = check_schema(engine)
    assert report.aligned
    assert report.missing_tables == []
    assert report.missing_columns == {}


def test_check_schema_reports_missing_tables(engine):
    SQLModel.metadata.tables["activities"].drop(engine)
    report = check_schema(engine)
    assert report.missing_tables == ["activities"]
    # Optional tables do not break alignment
    assert report.aligned

    SQLModel.metadata.tables["payout_methods"].drop(engine)
    report = check_schema(engine)
    assert "payout_methods" in report.missing_tables
    assert not report.aligned


def test_create_all_tables_without_optional(monkeypatch):
    engine = create_engine("sqlite://")
    monkeypatch.setattr(settings, "CREATE_OPTIONAL_TABLES", False)
    create_all_tables(engine)
    tables = set(inspect(engine).get_table_names())
    assert "leads" in tables
    assert not tables & set(OPTIONAL_TABLES)


def test_cli_prints_policies_in_dry_run():
    result = CliRunner().invoke(cli_app, ["apply-rls", "--dry-run"])
    assert result.exit_code == 0
    assert "ENABLE ROW LEVEL SECURITY" in result.output
