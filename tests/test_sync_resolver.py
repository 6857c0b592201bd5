"""Tests for conflict resolution strategies."""

import logging
import unittest

import pytest

from backlog_jira_sync.sync.errors import ConfigurationError
from backlog_jira_sync.sync.models import FieldConflict
from backlog_jira_sync.sync.resolver import (
    CONFLICT_STRATEGIES,
    ManualResolver,
    PreferLocalResolver,
    PreferRemoteResolver,
    PromptResolver,
    Resolution,
    create_resolver,
)

CONFLICTS = [FieldConflict(field="title", local_value="a", remote_value="b")]


class TestCreateResolver(unittest.TestCase):
    def test_known_strategies(self):
        expected = {
            "prefer-local": PreferLocalResolver,
            "prefer-remote": PreferRemoteResolver,
            "manual": ManualResolver,
            "prompt": PromptResolver,
        }
        self.assertEqual(set(CONFLICT_STRATEGIES), set(expected))
        for name, cls in expected.items():
            self.assertIsInstance(create_resolver(name), cls)

    def test_unknown_strategy(self):
        with self.assertRaises(ConfigurationError) as ctx:
            create_resolver("local-wins")
        self.assertIn("local-wins", str(ctx.exception))


class TestDecisions(unittest.TestCase):
    def test_prefer_local(self):
        resolver = PreferLocalResolver()
        self.assertEqual(resolver.resolve("task-1", CONFLICTS), Resolution.PUSH)
        self.assertEqual(resolver.label, "preferred-local")

    def test_prefer_remote(self):
        resolver = PreferRemoteResolver()
        self.assertEqual(resolver.resolve("task-1", CONFLICTS), Resolution.PULL)
        self.assertEqual(resolver.label, "preferred-remote")

    def test_manual(self):
        resolver = ManualResolver()
        self.assertEqual(
            resolver.resolve("task-1", []), Resolution.MARK_MANUAL
        )
        self.assertEqual(resolver.label, "manual-marked")


def test_prompt_warns_and_marks_manual(caplog):
    resolver = PromptResolver()
    with caplog.at_level(logging.WARNING):
        assert resolver.resolve("task-1", CONFLICTS) == Resolution.MARK_MANUAL
    assert resolver.label == "manual-required"
    assert "task-1" in caplog.text


@pytest.mark.parametrize("strategy", CONFLICT_STRATEGIES)
def test_resolvers_never_merge_values(strategy):
    result = create_resolver(strategy).resolve("task-1", CONFLICTS)
    assert isinstance(result, Resolution)
