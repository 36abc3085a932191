"""
Case History — CLI Tests

Runs the policy inspector against the shipped config and definitions,
with a throwaway SQLite store for link lookups.
"""

import contextlib
import io
import json
import os
import shutil
import sys
import tempfile
import unittest
from unittest.mock import patch

_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from coordinator.cli import main
from coordinator.store import SQLiteInstanceStore
from coordinator.types import CaseInstance, TaskRecord


class TestCLI(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.db = os.path.join(self.tmpdir, "instances.db")
        self.env = {k: v for k, v in os.environ.items() if not k.startswith("CH_")}

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def _run(self, *argv, env=None):
        buf = io.StringIO()
        with patch.dict(os.environ, env or self.env, clear=True), \
                contextlib.redirect_stdout(buf), \
                contextlib.redirect_stderr(io.StringIO()):
            main(["--root", _project_root, "--db", self.db, *argv])
        return json.loads(buf.getvalue())

    def test_levels(self):
        levels = self._run("levels")
        self.assertEqual(
            [entry["level"] for entry in levels],
            ["none", "instance", "task", "activity", "audit", "full"],
        )
        self.assertEqual([entry["rank"] for entry in levels], list(range(6)))
        self.assertEqual(
            [entry["captures_tasks"] for entry in levels],
            [False, False, True, False, True, True],
        )

    def test_resolve_definition_override(self):
        result = self._run("resolve", "--definition", "claimReview:3")
        self.assertEqual(result["level"], "task")
        self.assertEqual(result["source"], "definition")
        self.assertTrue(result["history_enabled"])

    def test_resolve_disabled_definition(self):
        result = self._run("resolve", "-d", "complaintIntake:1")
        self.assertEqual(result["level"], "none")
        self.assertFalse(result["history_enabled"])

    def test_resolve_unknown_definition(self):
        result = self._run("resolve", "-d", "unknown:1")
        self.assertEqual(result["level"], "audit")
        self.assertEqual(result["source"], "engine")

    def test_activity(self):
        opted = self._run("activity", "-d", "claimReview:3", "-a", "assessDamage")
        self.assertTrue(opted["record"])
        self.assertEqual(opted["reason"], "includeInHistory")

        plain = self._run("activity", "-d", "claimReview:3", "-a", "triageClaim")
        self.assertFalse(plain["record"])

        # plan item id falls back to its definition
        wrapped = self._run("activity", "-d", "claimReview:3", "-a", "planItemAssessment")
        self.assertTrue(wrapped["record"])

        disabled = self._run("activity", "-d", "complaintIntake:1", "-a", "recordComplaint")
        self.assertFalse(disabled["record"])

    def test_plan(self):
        decisions = self._run("plan", "-d", "claimReview:3", "-a", "triageClaim", "-a", "assessDamage")
        self.assertEqual(len(decisions), 9)
        by_event = {d["event"]: d["record"] for d in decisions if d["event"] != "plan_item_instance"}
        self.assertTrue(by_event["task"])
        self.assertFalse(by_event["milestone"])
        self.assertFalse(by_event["identity_link"])
        self.assertEqual(
            [d["record"] for d in decisions if d["event"] == "plan_item_instance"],
            [False, True],
        )

    def test_link_lookups(self):
        store = SQLiteInstanceStore(self.db)
        case_instance = CaseInstance.create("claimReview:3")
        task = TaskRecord.create("Triage", case_instance=case_instance)
        store.save_case_instance(case_instance)
        store.save_task(task)
        store.close()

        entity = self._run("link", "--entity-scope-type", "cmmn", "--entity-scope-id", case_instance.id)
        self.assertEqual(entity["case_definition_id"], "claimReview:3")
        self.assertFalse(entity["record"])

        identity = self._run("link", "--task-id", task.id)
        self.assertEqual(identity["case_definition_id"], "claimReview:3")
        self.assertFalse(identity["record"])

        standalone = self._run("link", "--scope-id", "case_missing")
        self.assertIsNone(standalone["case_definition_id"])
        self.assertTrue(standalone["record"])

    def test_env_profile_overlay(self):
        result = self._run("--env", "prod", "resolve", "-d", "unknown:1")
        self.assertEqual(result["level"], "activity")
        self.assertEqual(result["source"], "engine")

    def test_invalid_engine_level_exits(self):
        env = {**self.env, "CH_HISTORY_LEVEL": "verbose"}
        with self.assertRaises(SystemExit) as ctx:
            self._run("levels", env=env)
        self.assertEqual(ctx.exception.code, 2)

    def test_link_rejects_incomplete_entity_options(self):
        for argv in (
            ("link", "--entity-scope-id", "case_1"),
            ("link", "--entity-scope-type", "cmmn"),
            ("link", "--entity-scope-type", "cmmn", "--entity-scope-id", "case_1",
             "--task-id", "task_1"),
        ):
            with self.subTest(argv=argv):
                with self.assertRaises(SystemExit) as ctx:
                    self._run(*argv)
                self.assertEqual(ctx.exception.code, 2)

    def test_no_command_exits(self):
        with self.assertRaises(SystemExit) as ctx:
            with contextlib.redirect_stdout(io.StringIO()):
                main([])
        self.assertEqual(ctx.exception.code, 1)


if __name__ == "__main__":
    unittest.main()
