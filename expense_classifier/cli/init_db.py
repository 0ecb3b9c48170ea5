#!/usr/bin/env python3
"""
Database initialization script

Creates the tables the PostgreSQL-backed classifier reads and writes.
"""
import argparse
import sys
from pathlib import Path

import psycopg2

from expense_classifier.utils.db_connection import DatabaseSettings, get_db_connection
from expense_classifier.utils.logging_config import setup_logging

SCHEMA_FILE = Path(__file__).parent.parent / "db" / "schema.sql"

TABLES = ['merchant_learning', 'processed_corrections', 'user_rules', 'confirmed_transactions']


def run_sql_file(conn, sql_file: Path, description: str):
    """Execute a SQL file"""
    print(f"\n📄 {description}")
    print(f"   File: {sql_file}")

    with open(sql_file, 'r', encoding='utf-8') as f:
        sql = f.read()

    cursor = conn.cursor()
    try:
        cursor.execute(sql)
        conn.commit()
        print(f"   ✅ Success")
    except psycopg2.Error as e:
        conn.rollback()
        print(f"   ❌ Error: {e}")
        raise
    finally:
        cursor.close()


def print_summary(conn):
    """Print row counts per table"""
    cursor = conn.cursor()
    try:
        print("\n" + "=" * 80)
        print("📊 DATABASE SUMMARY")
        print("=" * 80)
        for table in TABLES:
            cursor.execute(f"SELECT COUNT(*) FROM {table}")
            print(f"{table}: {cursor.fetchone()[0]}")
        print("=" * 80)
    finally:
        cursor.close()


def main():
    parser = argparse.ArgumentParser(description='Create the expense classifier tables')
    parser.add_argument('--schema', default=str(SCHEMA_FILE), help='Schema SQL file')
    parser.add_argument('--log-level', help='Log level (default: LOG_LEVEL env var)')
    args = parser.parse_args()
    setup_logging(args.log_level)

    print("=" * 80)
    print("🚀 EXPENSE CLASSIFIER DATABASE INITIALIZATION")
    print("=" * 80)

    schema_file = Path(args.schema)
    if not schema_file.exists():
        print(f"\n❌ Missing schema file: {schema_file}")
        sys.exit(1)

    db_settings = DatabaseSettings.from_env()
    print(f"\n🔌 Connecting to {db_settings.describe()}...")
    try:
        conn = get_db_connection(db_settings)
        print("   ✅ Connected")
    except psycopg2.Error as e:
        print(f"   ❌ Connection failed: {e}")
        print("\nCheck the DB_HOST, DB_PORT, DB_NAME, DB_USER and DB_PASSWORD settings")
        sys.exit(1)

    try:
        run_sql_file(conn, schema_file, "Creating database schema")
        print_summary(conn)
        print("\n✅ Database initialization complete!")
    except psycopg2.Error as e:
        print(f"\n❌ Initialization failed: {e}")
        sys.exit(1)
    finally:
        conn.close()


if __name__ == "__main__":
    main()
