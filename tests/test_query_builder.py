"""
Tests for the query layer.

Covers:
- Dialect: identifier quoting, literal escaping, LIMIT/OFFSET, filters
- Condition compiler: Column, Raw and the shorthand string form
- QueryBuilder: clause chaining, compile/reset, retain, count mode
- INSERT / UPDATE / DELETE compilation and the WHERE guards
"""

from __future__ import annotations

import datetime
import enum

import pytest

from quarry.faults import ConfigInvalidFault, IllegalDeleteFault, QueryFault
from quarry.query import (
    UNBOUND,
    Column,
    Dialect,
    MySQLDialect,
    PostgreSQLDialect,
    QueryBuilder,
    Raw,
    SQLiteDialect,
    condition,
    get_dialect,
)
from quarry.query.conditions import bind_params, count_placeholders


ANSI = Dialect()


def compile_condition(expr, *args):
    return condition(expr, *args).compile(ANSI)


# ============================================================================
# Dialects
# ============================================================================


class TestQuoteColumns:
    def test_dotted_column(self):
        assert ANSI.quote_columns("t.col") == '"t"."col"'

    def test_function_call_unchanged(self):
        assert ANSI.quote_columns("COUNT(*)") == "COUNT(*)"

    def test_star_stays_bare(self):
        assert ANSI.quote_columns("*") == "*"
        assert ANSI.quote_columns("t.*") == '"t".*'

    def test_comma_list(self):
        assert ANSI.quote_columns("id, name") == '"id","name"'

    def test_list_argument(self):
        assert ANSI.quote_columns(["id", "s.name"]) == '"id","s"."name"'

    def test_already_quoted_token_kept(self):
        assert ANSI.quote_columns('"id", name') == '"id","name"'

    def test_alias(self):
        assert ANSI.quote_columns("s.name AS n") == '"s"."name" AS "n"'
        assert ANSI.quote_columns("id as student_id, name") == '"id" AS "student_id","name"'

    def test_alias_on_function_call_unchanged(self):
        assert ANSI.quote_columns("COUNT(*) AS n") == "COUNT(*) AS n"


class TestQuoteTable:
    def test_plain(self):
        assert ANSI.quote_table("student") == '"student"'

    def test_alias(self):
        assert ANSI.quote_table({"student": "s"}) == '"student" AS "s"'


class TestQuoteLiteral:
    def test_null_and_bool(self):
        assert ANSI.quote_literal(None) == "NULL"
        assert ANSI.quote_literal(True) == "1"
        assert ANSI.quote_literal(False) == "0"

    def test_numbers(self):
        assert ANSI.quote_literal(3) == "3"
        assert ANSI.quote_literal(2.5) == "2.5"

    def test_string_quotes_doubled(self):
        assert ANSI.quote_literal("O'Brien") == "'O''Brien'"

    def test_bytes(self):
        assert ANSI.quote_literal(b"\x01\xff") == "X'01ff'"

    def test_dates(self):
        assert ANSI.quote_literal(datetime.date(2024, 1, 31)) == "'2024-01-31'"
        assert ANSI.quote_literal(datetime.datetime(2024, 1, 31, 8, 30)) == "'2024-01-31 08:30:00'"

    def test_enum_uses_value(self):
        class Color(enum.Enum):
            RED = "red"

        assert ANSI.quote_literal(Color.RED) == "'red'"

    def test_mysql_escapes_backslash(self):
        assert MySQLDialect().quote_literal("a\\b") == "'a\\\\b'"

    def test_postgres_booleans(self):
        assert PostgreSQLDialect().quote_literal(True) == "TRUE"


class TestDialectRendering:
    def test_ansi_limit_offset(self):
        assert ANSI.limit_clause(10, 20) == "LIMIT 10 OFFSET 20"
        assert ANSI.limit_clause(None, 5) == "OFFSET 5"
        assert ANSI.limit_clause(None, None) == ""

    def test_sqlite_offset_without_limit(self):
        assert SQLiteDialect().limit_clause(None, 5) == "LIMIT -1 OFFSET 5"

    def test_mysql_offset_without_limit(self):
        assert MySQLDialect().limit_clause(None, 5) == "LIMIT 18446744073709551615 OFFSET 5"

    def test_mysql_filter_swaps_quotes_outside_literals(self):
        sql = 'SELECT * FROM "t" WHERE "a" = \'say "hi"\''
        assert MySQLDialect().filter(sql) == 'SELECT * FROM `t` WHERE `a` = \'say "hi"\''

    def test_ansi_filter_is_identity(self):
        assert ANSI.filter('SELECT "a"') == 'SELECT "a"'

    def test_get_dialect(self):
        assert isinstance(get_dialect("postgres"), PostgreSQLDialect)
        assert isinstance(get_dialect("SQLite"), SQLiteDialect)
        assert get_dialect().name == "ansi"

    def test_unknown_dialect(self):
        with pytest.raises(ConfigInvalidFault):
            get_dialect("oracle")


# ============================================================================
# Conditions
# ============================================================================


class TestColumnCondition:
    def test_bound_value(self):
        assert Column("age", ">", 18).compile(ANSI) == ('( "age" > ? )', [18])

    def test_list_is_inlined(self):
        assert Column("status", "=", [1, 2, 3]).compile(ANSI) == ('( "status" IN (1,2,3) )', [])

    def test_list_values_escaped(self):
        sql, params = Column("name", "IN", ["a'b", "c"]).compile(ANSI)
        assert sql == "( \"name\" IN ('a''b','c') )"
        assert params == []

    def test_not_in(self):
        assert Column("id", "!=", (4, 5)).compile(ANSI) == ('( "id" NOT IN (4,5) )', [])

    def test_empty_lists(self):
        assert Column("id", "IN", []).compile(ANSI) == ("( 1 = 0 )", [])
        assert Column("id", "NOT IN", []).compile(ANSI) == ("( 1 = 1 )", [])

    def test_none_is_null(self):
        assert Column("dorm_id", "=", None).compile(ANSI) == ('( "dorm_id" IS NULL )', [])
        assert Column("dorm_id", "!=", None).compile(ANSI) == ('( "dorm_id" IS NOT NULL )', [])

    def test_unbound_by_default(self):
        assert Column("name").compile(ANSI) == ('( "name" = ? )', [UNBOUND])

    def test_unknown_operator(self):
        with pytest.raises(QueryFault):
            Column("age", "===", 1)

    def test_list_with_ordering_operator(self):
        with pytest.raises(QueryFault):
            Column("age", ">", [1, 2]).compile(ANSI)


class TestRawCondition:
    def test_with_params(self):
        assert Raw("age BETWEEN ? AND ?", 1, 9).compile(ANSI) == ("( age BETWEEN ? AND ? )", [1, 9])

    def test_placeholders_become_unbound(self):
        assert Raw("age BETWEEN ? AND ?").compile(ANSI) == ("( age BETWEEN ? AND ? )", [UNBOUND, UNBOUND])

    def test_placeholder_inside_literal_not_counted(self):
        assert count_placeholders("a = '?' AND b = ?") == 1


class TestShorthandCondition:
    def test_status_in_list(self):
        assert QueryBuilder().condition("status", [1, 2, 3]) == '( "status" IN (1,2,3) )'

    def test_bare_column(self):
        assert compile_condition("name") == ('( "name" = ? )', [UNBOUND])

    def test_explicit_none_is_null(self):
        assert compile_condition("deleted_at", None) == ('( "deleted_at" IS NULL )', [])
        assert compile_condition("deleted_at IS NOT", None) == ('( "deleted_at" IS NOT NULL )', [])
        assert compile_condition("deleted_at !=", None) == ('( "deleted_at" IS NOT NULL )', [])

    def test_operator_and_value(self):
        assert compile_condition("age", ">", 18) == ('( "age" > ? )', [18])

    def test_scalar_in_operator_position(self):
        assert compile_condition("id", 5) == ('( "id" = ? )', [5])
        assert compile_condition("name", "Ann") == ('( "name" = ? )', ["Ann"])

    def test_column_operator_string(self):
        assert compile_condition("name LIKE", "A%") == ('( "name" LIKE ? )', ["A%"])
        assert compile_condition("s.age >=") == ('( "s"."age" >= ? )', [UNBOUND])

    def test_column_operator_string_with_list(self):
        assert compile_condition("status NOT IN", [1, 2]) == ('( "status" NOT IN (1,2) )', [])
        assert compile_condition("status NOT IN", []) == ("( 1 = 1 )", [])

    def test_function_operator_string(self):
        assert compile_condition("COUNT(*) >", 2) == ("( COUNT(*) > ? )", [2])

    def test_raw_fragment(self):
        assert compile_condition("deleted_at IS NULL") == ("( deleted_at IS NULL )", [])

    def test_raw_fragment_with_value(self):
        assert compile_condition("age > ?", 18) == ("( age > ? )", [18])

    def test_list_against_raw_fragment(self):
        with pytest.raises(QueryFault):
            condition("a > 1 OR b", [1, 2])

    def test_condition_passthrough(self):
        column = Column("a", "<", 3)
        assert condition(column) is column


class TestBindParams:
    def test_fills_in_order(self):
        assert bind_params([UNBOUND, 2, UNBOUND], [1, 3]) == [1, 2, 3]

    def test_extra_values_appended(self):
        assert bind_params([1], [2, 3]) == [1, 2, 3]

    def test_too_few_values(self):
        with pytest.raises(QueryFault):
            bind_params([UNBOUND, UNBOUND], [1])

    def test_unbound_is_falsy(self):
        assert not UNBOUND
        assert repr(UNBOUND) == "UNBOUND"


# ============================================================================
# Builder
# ============================================================================


class TestQueryBuilderSelect:
    def test_full_statement(self):
        sql, params = (
            QueryBuilder()
            .select("s.id, s.name")
            .from_table({"student": "s"})
            .join({"dorm": "d"}, {"d.id": "s.dorm_id"}, "LEFT")
            .where("s.age", ">", 18)
            .order_by("s.name", "DESC")
            .limit(10)
            .compile()
        )
        assert sql == (
            'SELECT "s"."id","s"."name"\n'
            'FROM "student" AS "s"\n'
            'LEFT JOIN "dorm" AS "d" ON "d"."id" = "s"."dorm_id"\n'
            'WHERE ( "s"."age" > ? )\n'
            'ORDER BY "s"."name" DESC\n'
            "LIMIT 10"
        )
        assert params == [18]

    def test_where_chain_conjunctions(self):
        sql, params = (
            QueryBuilder(table="t")
            .where("a", 1)
            .or_where("b", 2)
            .where("c", 3)
            .compile()
        )
        assert sql == 'SELECT *\nFROM "t"\nWHERE ( "a" = ? ) OR ( "b" = ? ) AND ( "c" = ? )'
        assert params == [1, 2, 3]

    def test_first_or_where_has_no_conjunction(self):
        sql, _ = QueryBuilder(table="t").or_where("a", 1).compile()
        assert sql.endswith('WHERE ( "a" = ? )')

    def test_mapping_where(self):
        sql, params = QueryBuilder(table="t").where({"a": 1, "b": None}).compile()
        assert sql.endswith('WHERE ( "a" = ? ) AND ( "b" IS NULL )')
        assert params == [1]

    def test_where_none_compiles_to_null(self):
        sql, params = QueryBuilder(table="t").where("deleted_at", None).compile()
        assert sql.endswith('WHERE ( "deleted_at" IS NULL )')
        assert params == []

    def test_select_alias(self):
        sql, _ = QueryBuilder().select("s.name AS n").from_table({"student": "s"}).compile()
        assert sql == 'SELECT "s"."name" AS "n"\nFROM "student" AS "s"'

    def test_group_by_and_having(self):
        sql, params = (
            QueryBuilder()
            .select("dorm_id, COUNT(*)")
            .from_table("student")
            .group_by("dorm_id")
            .having("COUNT(*) >", 2)
            .compile()
        )
        assert sql == (
            "SELECT dorm_id, COUNT(*)\n"
            'FROM "student"\n'
            'GROUP BY "dorm_id"\n'
            "HAVING ( COUNT(*) > ? )"
        )
        assert params == [2]

    def test_having_chain(self):
        sql, _ = (
            QueryBuilder(table="t")
            .group_by("a")
            .having("SUM(b) >", 1)
            .or_having("SUM(b) <", 0)
            .compile()
        )
        assert sql.endswith("HAVING ( SUM(b) > ? ) OR ( SUM(b) < ? )")

    def test_raw_join(self):
        sql, _ = QueryBuilder(table="a").join('NATURAL JOIN "b"').compile()
        assert sql == 'SELECT *\nFROM "a"\nNATURAL JOIN "b"'

    def test_multiple_from(self):
        sql, _ = QueryBuilder().from_table("a").from_table("b").compile()
        assert sql == 'SELECT *\nFROM "a","b"'

    def test_limit_with_offset(self):
        sql, _ = QueryBuilder(table="t").limit(10, 20).compile()
        assert sql.endswith("LIMIT 10 OFFSET 20")

    def test_sqlite_offset_only(self):
        sql, _ = QueryBuilder(get_dialect("sqlite"), table="t").offset(5).compile()
        assert sql == 'SELECT *\nFROM "t"\nLIMIT -1 OFFSET 5'

    def test_invalid_direction(self):
        with pytest.raises(ValueError):
            QueryBuilder().order_by("name", "SIDEWAYS")


class TestQueryBuilderState:
    def test_compile_resets_state(self):
        builder = QueryBuilder().select("id").from_table("t").where("id", 1).limit(3)
        builder.compile()
        assert builder.compile() == ("SELECT *\nFROM ", [])

    def test_retain_keeps_state(self):
        builder = QueryBuilder(table="t").where("id", 1)
        first = builder.compile(retain=True)
        assert builder.compile() == first

    def test_count_mode_drops_order_and_limit(self):
        sql, params = (
            QueryBuilder(table="student")
            .where("age", ">", 18)
            .order_by("name")
            .limit(5)
            .compile(for_count=True)
        )
        assert sql == 'SELECT *\nFROM "student"\nWHERE ( "age" > ? )'
        assert params == [18]

    def test_unbound_values_supplied_at_compile(self):
        _, params = QueryBuilder(table="t").where("a").where("b", 2).where("c").compile([1, 3])
        assert params == [1, 2, 3]

    def test_str_does_not_reset(self):
        builder = QueryBuilder(table="t").where("a", 1)
        assert "WHERE" in str(builder)
        assert builder.has_where

    def test_clear(self):
        builder = QueryBuilder(table="t").where("a", 1).clear()
        assert not builder.has_where


class TestQueryBuilderWrites:
    def test_insert(self):
        sql, params = QueryBuilder().compile_insert("student", {"name": "Ann", "age": 20})
        assert sql == 'INSERT INTO "student" ("name","age") VALUES (?,?)'
        assert params == ["Ann", 20]

    def test_update(self):
        sql, params = QueryBuilder().where("id", 3).compile_update({"name": "Bo"}, "student")
        assert sql == 'UPDATE "student" SET "name" = ?\nWHERE ( "id" = ? )'
        assert params == ["Bo", 3]

    def test_update_without_where(self):
        builder = QueryBuilder(table="student")
        assert builder.compile_update({"name": "Bo"}) is None

    def test_delete(self):
        sql, params = QueryBuilder(table="student").where("id", [1, 2]).compile_delete()
        assert sql == 'DELETE FROM "student"\nWHERE ( "id" IN (1,2) )'
        assert params == []

    def test_delete_without_where(self):
        builder = QueryBuilder(table="student").limit(1)
        with pytest.raises(IllegalDeleteFault):
            builder.compile_delete()
        assert builder.compile() == ('SELECT *\nFROM "student"', [])
