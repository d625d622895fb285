"""
Tests for TempArtifactManager.
"""

import logging
from pathlib import Path

from mssql_admin_core.sql.sql_utils.temp_files import TempArtifactManager


class TestTempArtifactManager:
    def test_allocations_are_unique_and_prefixed(self, tmp_path):
        manager = TempArtifactManager(tmp_path, prefix="job")

        paths = [manager.allocate() for _ in range(5)]

        assert len(set(paths)) == 5
        assert all(path.parent == tmp_path for path in paths)
        assert all(path.name.startswith(f"job-{manager.run_id}-") for path in paths)
        assert paths[0].name == f"job-{manager.run_id}-1.sql"
        assert paths[4].name == f"job-{manager.run_id}-5.sql"

    def test_two_managers_do_not_collide(self, tmp_path):
        first = TempArtifactManager(tmp_path)
        second = TempArtifactManager(tmp_path)

        assert first.run_id != second.run_id
        assert first.allocate() != second.allocate()

    def test_cleanup_removes_written_files(self, tmp_path):
        manager = TempArtifactManager(tmp_path)
        written = [manager.write("SELECT 1"), manager.write("SELECT 2")]
        assert all(path.exists() for path in written)

        manager.cleanup()

        assert not any(path.exists() for path in written)
        assert list(tmp_path.iterdir()) == []

    def test_cleanup_is_idempotent(self, tmp_path):
        manager = TempArtifactManager(tmp_path)
        path = manager.write("SELECT 1")

        manager.cleanup()
        manager.cleanup()

        assert not path.exists()
        assert manager.paths == []

    def test_cleanup_ignores_missing_files(self, tmp_path):
        """Allocated but never written paths should not fail cleanup."""
        manager = TempArtifactManager(tmp_path)
        manager.allocate()
        manager.cleanup()

    def test_cleanup_swallows_delete_errors(self, tmp_path, monkeypatch, caplog):
        manager = TempArtifactManager(tmp_path)
        path = manager.write("SELECT 1")

        def refuse(self, missing_ok=False):
            raise PermissionError("locked")

        monkeypatch.setattr(Path, "unlink", refuse)
        with caplog.at_level(logging.DEBUG):
            manager.cleanup()

        assert "Could not remove temporary file" in caplog.text

    def test_context_manager_cleans_up_on_error(self, tmp_path):
        path = None
        try:
            with TempArtifactManager(tmp_path) as manager:
                path = manager.write("SELECT 1")
                raise RuntimeError("boom")
        except RuntimeError:
            pass

        assert path is not None
        assert not path.exists()
