"""Postgres row-level security policies and schema checks.

The policies mirror ``network_earnings.utils.visibility`` so clients talking
to the database directly with a user token see the same rows as the API.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional
import logging

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel

from network_earnings.core.db import OPTIONAL_TABLES

logger = logging.getLogger(__name__)

IS_ADMIN = "coalesce(auth.jwt() -> 'user_metadata' ->> 'role', '') = 'admin'"
OWNED_CAMPAIGNS = "campaign_id IN (SELECT id FROM campaigns WHERE business_id = auth.uid())"

# Enum columns hold member names, e.g. 'ACTIVE'
# table -> [(policy name, command, USING / WITH CHECK expression)]
POLICIES: Dict[str, List[tuple]] = {
    "campaigns": [
        ("campaigns_select", "SELECT",
         f"{IS_ADMIN} OR business_id = auth.uid() OR status = 'ACTIVE'"),
        ("campaigns_insert", "INSERT", f"{IS_ADMIN} OR business_id = auth.uid()"),
        ("campaigns_update", "UPDATE", f"{IS_ADMIN} OR business_id = auth.uid()"),
    ],
    "leads": [
        ("leads_select", "SELECT",
         f"{IS_ADMIN} OR referrer_id = auth.uid() OR {OWNED_CAMPAIGNS}"),
        ("leads_insert", "INSERT", f"{IS_ADMIN} OR referrer_id = auth.uid()"),
        ("leads_update", "UPDATE",
         f"{IS_ADMIN} OR referrer_id = auth.uid() OR {OWNED_CAMPAIGNS}"),
    ],
    "earnings": [
        ("earnings_select", "SELECT",
         f"{IS_ADMIN} OR referrer_id = auth.uid() OR {OWNED_CAMPAIGNS}"),
        ("earnings_update", "UPDATE", f"{IS_ADMIN} OR {OWNED_CAMPAIGNS}"),
    ],
    "payouts": [
        ("payouts_select", "SELECT", f"{IS_ADMIN} OR user_id = auth.uid()"),
        ("payouts_insert", "INSERT", "user_id = auth.uid()"),
    ],
    "payout_methods": [
        ("payout_methods_all", "ALL", "user_id = auth.uid()"),
        ("payout_methods_admin_select", "SELECT", IS_ADMIN),
    ],
    "disputes": [
        ("disputes_select", "SELECT",
         f"{IS_ADMIN} OR referrer_id = auth.uid() OR business_id = auth.uid()"),
        ("disputes_insert", "INSERT", f"{IS_ADMIN} OR business_id = auth.uid()"),
        ("disputes_update", "UPDATE", f"{IS_ADMIN} OR referrer_id = auth.uid()"),
    ],
    "activities": [
        ("activities_select", "SELECT", f"{IS_ADMIN} OR user_id = auth.uid()"),
    ],
}


def policy_statements(include_optional: bool = True) -> List[str]:
    """SQL statements that (re)create every policy, in execution order."""
    statements = []
    for table, policies in POLICIES.items():
        if table in OPTIONAL_TABLES and not include_optional:
            continue
        statements.append(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
        for name, command, expression in policies:
            statements.append(f'DROP POLICY IF EXISTS "{name}" ON {table}')
            clause = f"WITH CHECK ({expression})" if command == "INSERT" else f"USING ({expression})"
            statements.append(f'CREATE POLICY "{name}" ON {table} FOR {command} {clause}')
    return statements


@dataclass
class ApplyResult:
    applied: int = 0
    failed: List[str] = field(default_factory=list)
    skipped: bool = False


def apply_policies(engine: Engine, statements: Optional[List[str]] = None) -> ApplyResult:
    """Run the policy statements one at a time.

    A failing statement is logged and the rest still run. Non-Postgres
    databases are skipped.
    """
    result = ApplyResult()
    if engine.dialect.name != "postgresql":
        logger.warning("Row-level security needs Postgres; %s database skipped", engine.dialect.name)
        result.skipped = True
        return result

    statements = statements if statements is not None else policy_statements()
    for index, statement in enumerate(statements, start=1):
        try:
            with engine.begin() as connection:
                connection.execute(text(statement))
            result.applied += 1
            logger.info("Statement %d/%d applied", index, len(statements))
        except SQLAlchemyError as e:
            logger.error("Statement %d/%d failed: %s", index, len(statements), e)
            result.failed.append(statement)
    return result


@dataclass
class SchemaReport:
    missing_tables: List[str] = field(default_factory=list)
    missing_columns: Dict[str, List[str]] = field(default_factory=dict)
    extra_columns: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def aligned(self) -> bool:
        required_missing = [t for t in self.missing_tables if t not in OPTIONAL_TABLES]
        return not required_missing and not self.missing_columns


def check_schema(engine: Engine) -> SchemaReport:
    """Compare the live database with the application models."""
    inspector = inspect(engine)
    existing = set(inspector.get_table_names())
    report = SchemaReport()
    for name, table in SQLModel.metadata.tables.items():
        if name not in existing:
            report.missing_tables.append(name)
            continue
        live = {column["name"] for column in inspector.get_columns(name)}
        expected = {column.name for column in table.columns}
        if expected - live:
            report.missing_columns[name] = sorted(expected - live)
        if live - expected:
            report.extra_columns[name] = sorted(live - expected)
    return report
