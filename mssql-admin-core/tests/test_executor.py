"""
Tests for SQLExecutor and batch splitting.
"""

import pytest
from fakes import FakeDriverError, FakeResult

from mssql_admin_core import ExecutionError, InstanceSpec, InvalidArgumentError
from mssql_admin_core.sql.sql_utils.executor import SQLExecutor, procedure_call, split_batches
from mssql_admin_core.sql.sql_utils.models import CommandType, OutputShape, ResultSet


@pytest.fixture
def context(binder):
    return binder.bind(InstanceSpec(host="sql01", database="master"))


@pytest.fixture
def server(driver):
    return driver.server("sql01")


class TestSplitBatches:
    def test_go_lines_split_batches(self):
        script = "CREATE TABLE t (id int)\nGO\ninsert into t values (1)\n  go  \nSELECT * FROM t"

        assert split_batches(script) == [
            "CREATE TABLE t (id int)",
            "insert into t values (1)",
            "SELECT * FROM t",
        ]

    def test_go_with_count_repeats_batch(self):
        assert split_batches("INSERT INTO t DEFAULT VALUES\nGO 3\n") == ["INSERT INTO t DEFAULT VALUES"] * 3

    def test_go_inside_identifiers_is_not_a_separator(self):
        script = "SELECT 1 AS GOAL\nGO -- end of batch\nSELECT 'GO'"

        assert split_batches(script) == ["SELECT 1 AS GOAL", "SELECT 'GO'"]

    def test_empty_batches_are_dropped(self):
        assert split_batches("GO\n\nGO\n") == []


class TestProcedureCall:
    def test_positional(self):
        assert procedure_call("dbo.p", [1, "a"]) == ("{CALL dbo.p (?, ?)}", [1, "a"])

    def test_named(self):
        assert procedure_call("dbo.p", {"id": 1, "@name": "a"}) == ("EXEC dbo.p @id = ?, @name = ?", [1, "a"])

    def test_no_parameters(self):
        assert procedure_call("dbo.p", None) == ("EXEC dbo.p", [])


class TestSQLExecutor:
    def test_rows_shape(self, context, server):
        server.on("sys.databases", [FakeResult(columns=["name"], rows=[("master",), ("tempdb",)])])

        result = SQLExecutor().execute(context, "SELECT name FROM sys.databases")

        assert result.output == [{"name": "master"}, {"name": "tempdb"}]
        assert result.target == "sql01"
        assert result.database == "master"

    def test_shapes(self, context, server):
        server.on(
            "multi",
            [
                FakeResult(columns=["a", "b"], rows=[(1, 2)]),
                FakeResult(columns=["c"], rows=[(3,)]),
            ],
        )
        executor = SQLExecutor()

        dataset = executor.execute(context, "multi", output_shape=OutputShape.DATASET).output
        table = executor.execute(context, "multi", output_shape=OutputShape.TABLE).output
        value = executor.execute(context, "multi", output_shape=OutputShape.SINGLE_VALUE).output

        assert dataset == [ResultSet(columns=["a", "b"], rows=[[1, 2]]), ResultSet(columns=["c"], rows=[[3]])]
        assert table == ResultSet(columns=["a", "b"], rows=[[1, 2]])
        assert value == 1

    def test_single_value_without_rows(self, context):
        assert SQLExecutor().execute(context, "UPDATE t SET x = 1", output_shape=OutputShape.SINGLE_VALUE).output is None

    def test_server_instance_column(self, context, server):
        server.on("SELECT", [FakeResult(columns=["x"], rows=[(1,)])])

        result = SQLExecutor().execute(context, "SELECT 1 AS x", server_instance="sql01")

        assert result.output == [{"ServerInstance": "sql01", "x": 1}]

    def test_batches_run_in_order(self, context, server):
        SQLExecutor().execute(context, "SELECT 1\nGO\nSELECT 2")

        assert server.statements == ["SELECT 1", "SELECT 2"]

    def test_rowcount_is_summed(self, context, server):
        server.on("UPDATE", [FakeResult(rowcount=3)])
        server.on("DELETE", [FakeResult(rowcount=2)])

        result = SQLExecutor().execute(context, "UPDATE t SET x = 1\nGO\nDELETE FROM t")

        assert result.rowcount == 5

    def test_messages_are_collected_and_can_be_interleaved(self, context, server):
        server.on(
            "PRINT",
            [
                FakeResult(messages=["starting"]),
                FakeResult(columns=["x"], rows=[(1,)], messages=["rows follow"]),
            ],
        )

        quiet = SQLExecutor().execute(context, "PRINT 'starting'; SELECT 1 AS x")
        loud = SQLExecutor().execute(context, "PRINT 'starting'; SELECT 1 AS x", messages_to_output=True)

        assert quiet.messages == ["starting", "rows follow"]
        assert quiet.output == [{"x": 1}]
        assert loud.output == ["starting", "rows follow", ResultSet(columns=["x"], rows=[[1]])]

    def test_timeout_applied_to_connection(self, context):
        SQLExecutor(query_timeout=600).execute(context, "SELECT 1")
        assert context.connection.timeout == 600

        SQLExecutor(query_timeout=600).execute(context, "SELECT 1", timeout=5)
        assert context.connection.timeout == 5

    def test_parameters_passed_positionally(self, context, server):
        SQLExecutor().execute(context, "SELECT * FROM t WHERE id = ?", parameters=[7])

        assert server.executed[-1][2] == [7]

    def test_named_parameters_require_stored_procedure(self, context):
        with pytest.raises(InvalidArgumentError):
            SQLExecutor().execute(context, "SELECT @id", parameters={"id": 1})

    def test_parameters_with_several_batches_rejected(self, context):
        with pytest.raises(InvalidArgumentError):
            SQLExecutor().execute(context, "SELECT ?\nGO\nSELECT ?", parameters=[1])

    def test_stored_procedure(self, context, server):
        SQLExecutor().execute(
            context, "dbo.usp_cleanup", command_type=CommandType.STORED_PROCEDURE, parameters={"days": 30}
        )

        assert server.executed[-1][1:] == ("EXEC dbo.usp_cleanup @days = ?", [30])

    def test_no_exec_wraps_batches(self, context, server):
        SQLExecutor().execute(context, "DROP TABLE t", no_exec=True)

        assert server.statements == ["SET NOEXEC ON", "DROP TABLE t", "SET NOEXEC OFF"]

    def test_no_exec_is_reset_after_failure(self, context, server):
        server.on("DROP", FakeDriverError("42S02", "[Microsoft][SQL Server]Cannot drop the table 't'"))

        with pytest.raises(ExecutionError):
            SQLExecutor().execute(context, "DROP TABLE t", no_exec=True)

        assert server.statements[-1] == "SET NOEXEC OFF"

    def test_driver_error_becomes_execution_error(self, context, server):
        server.on("bad", FakeDriverError("42000", "[Microsoft][ODBC Driver 18 for SQL Server][SQL Server]Incorrect syntax near 'bad'."))

        with pytest.raises(ExecutionError) as exc_info:
            SQLExecutor().execute(context, "SELECT bad bad", source="fix.sql")

        error = exc_info.value
        assert error.target == "sql01"
        assert error.source == "fix.sql"
        assert error.message == "Query failed: Incorrect syntax near 'bad'."
