import os
import tempfile
import unittest
from argparse import ArgumentTypeError

from testflows.github.ephemeral.runners.args import (
    count_type,
    positive_number_type,
    non_negative_number_type,
    provider_type,
    market_type,
    label_type,
    version_type,
    repository_type,
    instance_ids_type,
    tags_type,
    file_contents_type,
)


class TestArgumentTypes(unittest.TestCase):
    def test_count(self):
        self.assertEqual(count_type("3"), 3)
        for value in ("0", "-1", "two"):
            with self.subTest(value=value):
                with self.assertRaises(ArgumentTypeError):
                    count_type(value)

    def test_numbers(self):
        self.assertEqual(positive_number_type("10"), 10)
        self.assertEqual(positive_number_type("0.5"), 0.5)
        self.assertEqual(non_negative_number_type("0"), 0)
        with self.assertRaises(ArgumentTypeError):
            positive_number_type("0")
        with self.assertRaises(ArgumentTypeError):
            non_negative_number_type("-5")

    def test_provider_and_market(self):
        self.assertEqual(provider_type("Hetzner"), "hetzner")
        self.assertEqual(market_type("SPOT"), "spot")
        with self.assertRaises(ArgumentTypeError):
            provider_type("azure")
        with self.assertRaises(ArgumentTypeError):
            market_type("reserved")

    def test_label(self):
        self.assertEqual(
            label_type(" github-ephemeral-runner-abc "), "github-ephemeral-runner-abc"
        )
        for value in ("", "has space", "semi;colon"):
            with self.subTest(value=value):
                with self.assertRaises(ArgumentTypeError):
                    label_type(value)

    def test_version(self):
        self.assertEqual(version_type("v2.313.0"), "2.313.0")
        self.assertEqual(version_type("2.300.1"), "2.300.1")
        with self.assertRaises(ArgumentTypeError):
            version_type("latest")

    def test_repository(self):
        self.assertEqual(repository_type("octo/hello"), "octo/hello")
        for value in ("hello", "a/b/c", "octo/ hello"):
            with self.subTest(value=value):
                with self.assertRaises(ArgumentTypeError):
                    repository_type(value)

    def test_instance_ids(self):
        """Instance ids are accepted as JSON or comma separated list"""
        self.assertEqual(instance_ids_type('["i-1", "i-2"]'), ("i-1", "i-2"))
        self.assertEqual(instance_ids_type("i-1, i-2,"), ("i-1", "i-2"))
        self.assertEqual(instance_ids_type(["101", 102]), ("101", "102"))
        for value in ("", "[]", " , ", '["i-1"', '[""]'):
            with self.subTest(value=value):
                with self.assertRaises(ArgumentTypeError):
                    instance_ids_type(value)

    def test_tags(self):
        """Tags are accepted as JSON list of Key/Value objects or a mapping"""
        self.assertEqual(
            tags_type('[{"Key": "team", "Value": "qa"}]'), (("team", "qa"),)
        )
        self.assertEqual(tags_type('{"team": "qa", "env": 1}'), (("team", "qa"), ("env", "1")))
        for value in ("not json", '"team"', '[{"Key": "team"}]'):
            with self.subTest(value=value):
                with self.assertRaises(ArgumentTypeError):
                    tags_type(value)

    def test_file_contents(self):
        """@path reads the file, other values are used as is"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "pre.sh")
            with open(path, "w") as f:
                f.write("echo hello\n")
            self.assertEqual(file_contents_type(f"@{path}"), "echo hello\n")

        self.assertEqual(file_contents_type("echo hi"), "echo hi")


if __name__ == "__main__":
    unittest.main()
