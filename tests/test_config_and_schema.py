from __future__ import annotations

import importlib
from pathlib import Path

import pytest

from config import get_settings_module
from src.edu_billing.edu_billing.database.bootstrap import iter_sql_statements
from src.edu_billing.edu_billing.database.connection import DBConfig

SCHEMA = Path(__file__).resolve().parents[1] / "database" / "schema.sql"


@pytest.mark.parametrize(
    "env, expected",
    [
        ("production", "config.production"),
        ("PROD", "config.production"),
        ("testing", "config.testing"),
        ("staging", "config.development"),
    ],
)
def test_settings_module_follows_app_env(monkeypatch, env, expected):
    monkeypatch.setenv("APP_ENV", env)

    assert get_settings_module() == expected


def test_testing_settings_use_a_separate_database():
    settings = importlib.import_module("config.testing")

    assert settings.TESTING is True
    assert settings.DB_CONFIG["database"]
    assert DBConfig.from_mapping(settings.DB_CONFIG).port == settings.DB_CONFIG["port"]


def test_statements_split_outside_quotes():
    sql = "INSERT INTO t VALUES ('a;b');\nINSERT INTO t VALUES (\"c;d\");  \n\nSELECT 1"

    assert list(iter_sql_statements(sql)) == [
        "INSERT INTO t VALUES ('a;b')",
        'INSERT INTO t VALUES ("c;d")',
        "SELECT 1",
    ]


def test_schema_defines_every_table():
    statements = list(iter_sql_statements(SCHEMA.read_text(encoding="utf-8")))
    created = " ".join(s for s in statements if "CREATE TABLE" in s.upper())

    for table in (
        "activities",
        "activity_price_history",
        "enrollments",
        "attendance",
        "finance_transactions",
        "staff_billing_rules",
        "staff_manual_rate_history",
        "staff_journal_entries",
        "holidays",
    ):
        assert f"CREATE TABLE IF NOT EXISTS {table}" in created


@pytest.mark.parametrize(
    "table, key",
    [
        ("finance_transactions", "UNIQUE KEY uq_transactions_student_day (date, type, student_id, activity_key)"),
        ("staff_journal_entries", "UNIQUE KEY uq_staff_journal_day (staff_id, activity_key, date, is_manual_override)"),
    ],
)
def test_upserted_tables_carry_a_unique_day_key(table, key):
    statements = list(iter_sql_statements(SCHEMA.read_text(encoding="utf-8")))
    [create] = [s for s in statements if f"CREATE TABLE IF NOT EXISTS {table} " in s]

    assert key in create
    assert "activity_key CHAR(36) AS (IFNULL(activity_id, '')) STORED NOT NULL" in create
