"""
CLI tests. Commands run on the in-memory store passed to ``main``.
"""

import asyncio
from datetime import timedelta

import pytest

from civictrack.cli import build_parser, main
from civictrack.services import INCIDENT_TYPES, InMemoryDocumentStore, REPORTS

from tests.conftest import NOW, offset_north


class TestParser:

    def test_merge_arguments(self):
        args = build_parser().parse_args(["merge", "target", "a", "b"])
        assert args.target == "target"
        assert args.sources == ["a", "b"]

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()


class TestCommands:

    def test_reconcile(self, store, add_incident, capsys):
        # Report time is well in the past, so the sweep marks it overdue
        add_incident("p1")

        assert main(["reconcile"], store=store) == 0

        assert "Scanned 1 incidents, updated 1, newly overdue 1" in capsys.readouterr().out
        assert asyncio.run(store.get(REPORTS, "p1"))["status"] == "Overdue"

    def test_scan_duplicates(self, store, add_incident, capsys):
        add_incident("a", timestamp=NOW - timedelta(hours=5), location="Main St")
        add_incident("b", latitude=offset_north(40.0, 30))

        assert main(["scan-duplicates"], store=store) == 0

        out = capsys.readouterr().out
        assert "a [Pothole] Main St" in out
        assert "  - b (30m)" in out
        assert "1 groups" in out

    def test_scan_without_groups(self, store, capsys):
        assert main(["scan-duplicates"], store=store) == 0
        assert "No duplicate groups found" in capsys.readouterr().out

    def test_merge(self, store, add_incident, capsys):
        add_incident("target")
        add_incident("source")

        assert main(["merge", "target", "source"], store=store) == 0
        assert "Merged 1 incidents into target" in capsys.readouterr().out

    def test_partial_merge_exit_code(self, store, add_incident, capsys):
        add_incident("target")
        add_incident("source")

        assert main(["merge", "target", "source", "ghost"], store=store) == 2
        out = capsys.readouterr().out
        assert "merged: source" in out
        assert "failed: ghost (not found)" in out

    def test_merge_into_self_fails(self, store, add_incident, capsys):
        add_incident("target")

        assert main(["merge", "target", "target"], store=store) == 1
        assert "Merge failed" in capsys.readouterr().out

    @pytest.mark.parametrize("seed,expected", [({}, 10), (None, 5)])
    def test_seed_types(self, store, seed, expected, capsys):
        target = InMemoryDocumentStore(seed={INCIDENT_TYPES: seed}) if seed is not None else store

        assert main(["seed-types"], store=target) == 0
        assert f"Added {expected} incident types" in capsys.readouterr().out
