import os
import unittest
from unittest.mock import patch

from testflows.github.ephemeral.runners.actions import Action
from testflows.github.ephemeral.runners.cli import argparser, configure, main

start_args = [
    "--github-token",
    "ghp_token",
    "--github-repository",
    "octo/hello",
    "--image-id",
    "ami-123",
    "--instance-type",
    "t3.medium",
    "--subnet-id",
    "subnet-1",
    "--security-group-id",
    "sg-1",
]


class TestArgumentParser(unittest.TestCase):
    def test_start(self):
        args = argparser().parse_args(
            start_args
            + ["--number-of-machines", "2", "--runners-per-machine", "3", "start"]
        )
        config = configure(args)

        self.assertEqual(config.mode, "start")
        self.assertEqual(config.github_repository, "octo/hello")
        self.assertEqual(config.expected_runners, 6)
        self.assertEqual(config.provider, "aws")

    def test_stop(self):
        args = argparser().parse_args(
            [
                "--provider",
                "hetzner",
                "stop",
                "--label",
                "github-ephemeral-runner-abc",
                "--instance-ids",
                '["101","102"]',
            ]
        )
        config = configure(args)

        self.assertEqual(config.mode, "stop")
        self.assertEqual(config.provider, "hetzner")
        self.assertEqual(config.label, "github-ephemeral-runner-abc")
        self.assertEqual(config.instance_ids, ("101", "102"))

    def test_mode_is_required(self):
        with patch("sys.stderr"):
            with self.assertRaises(SystemExit):
                argparser().parse_args(start_args)

    def test_unknown_mode(self):
        """Only start and stop commands are accepted"""
        with patch("sys.stderr"):
            with self.assertRaises(SystemExit) as cm:
                argparser().parse_args(start_args + ["restart"])

        self.assertEqual(cm.exception.code, 2)


@patch("testflows.github.ephemeral.runners.cli.logger.configure")
@patch("testflows.github.ephemeral.runners.cli.orchestrator.run")
class TestMain(unittest.TestCase):
    def setUp(self):
        self.addCleanup(setattr, Action, "debug", Action.debug)

    def test_success(self, run, configure_logger):
        self.assertEqual(main(start_args + ["start"]), 0)

        run.assert_called_once()
        config = run.call_args.args[0]
        self.assertEqual(config.mode, "start")
        self.assertEqual(config.image_id, "ami-123")
        configure_logger.assert_called_once()

    def test_failure_exits_with_error(self, run, configure_logger):
        run.side_effect = RuntimeError("boom")

        with self.assertRaises(SystemExit) as cm:
            main(start_args + ["start"])

        self.assertEqual(cm.exception.code, 1)

    def test_missing_parameter(self, run, configure_logger):
        with patch.dict(os.environ, {}, clear=True), patch("sys.stderr"):
            with self.assertRaises(SystemExit) as cm:
                main(["--github-repository", "octo/hello", "stop", "--label", "abc"])

        self.assertEqual(cm.exception.code, 1)
        run.assert_not_called()


if __name__ == "__main__":
    unittest.main()
