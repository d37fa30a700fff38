import unittest
from unittest.mock import MagicMock

from testflows.github.ephemeral.runners.config import Config
from testflows.github.ephemeral.runners.errors import WaitRunningError
from testflows.github.ephemeral.runners.labels import runner_label_tag
from testflows.github.ephemeral.runners.providers import get_provisioner
from testflows.github.ephemeral.runners.providers.aws import Ec2Provisioner


def config(**kwargs):
    defaults = dict(
        provider="aws",
        aws_region="us-east-1",
        image_id="ami-123",
        instance_type="t3.medium",
        subnet_id="subnet-1",
        security_group_id="sg-1",
    )
    defaults.update(kwargs)
    return Config(**defaults)


def run_instances_response(instance_id):
    return {"Instances": [{"InstanceId": instance_id}]}


class TestEc2Provisioner(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()

    def test_get_provisioner(self):
        """AWS provider is the default and its client is created lazily"""
        provisioner = get_provisioner(Config())
        self.assertIsInstance(provisioner, Ec2Provisioner)
        self.assertIsNone(provisioner._client)

    def test_launch_params(self):
        """On-demand launch parameters"""
        provisioner = Ec2Provisioner(config(), client=self.client)

        params = provisioner.launch_params("#!/bin/bash\n", "my-label")

        self.assertEqual(params["ImageId"], "ami-123")
        self.assertEqual(params["InstanceType"], "t3.medium")
        self.assertEqual(params["MinCount"], 1)
        self.assertEqual(params["MaxCount"], 1)
        self.assertEqual(params["UserData"], "#!/bin/bash\n")
        self.assertEqual(params["SubnetId"], "subnet-1")
        self.assertEqual(params["SecurityGroupIds"], ["sg-1"])
        self.assertIn(
            {"Key": runner_label_tag, "Value": "my-label"},
            params["TagSpecifications"][0]["Tags"],
        )
        self.assertNotIn("InstanceMarketOptions", params)
        self.assertNotIn("IamInstanceProfile", params)
        self.assertNotIn("KeyName", params)

    def test_launch_params_optional(self):
        """Spot market, IAM role and key pair"""
        provisioner = Ec2Provisioner(
            config(market_type="spot", iam_role_name="runner-role", key_name="ci"),
            client=self.client,
        )

        params = provisioner.launch_params("", "my-label")

        self.assertEqual(
            params["InstanceMarketOptions"],
            {"MarketType": "spot", "SpotOptions": {"SpotInstanceType": "one-time"}},
        )
        self.assertEqual(params["IamInstanceProfile"], {"Name": "runner-role"})
        self.assertEqual(params["KeyName"], "ci")

    def test_launch_one_request_per_machine(self):
        """Instances are launched one by one and ids are kept in launch order"""
        self.client.run_instances.side_effect = [
            run_instances_response("i-1"),
            run_instances_response("i-2"),
            run_instances_response("i-3"),
        ]
        provisioner = Ec2Provisioner(config(number_of_machines=3), client=self.client)

        instance_ids = provisioner.launch("script", "my-label")

        self.assertEqual(instance_ids, ["i-1", "i-2", "i-3"])
        self.assertEqual(self.client.run_instances.call_count, 3)
        for call in self.client.run_instances.call_args_list:
            self.assertEqual(call.kwargs["MinCount"], 1)
            self.assertEqual(call.kwargs["MaxCount"], 1)
            self.assertEqual(call.kwargs["UserData"], "script")

    def test_launch_failure_propagates(self):
        """Launch stops at the first rejected request"""
        self.client.run_instances.side_effect = [
            run_instances_response("i-1"),
            RuntimeError("InsufficientInstanceCapacity"),
        ]
        provisioner = Ec2Provisioner(config(number_of_machines=3), client=self.client)

        with self.assertRaises(RuntimeError):
            provisioner.launch("script", "my-label")

        self.assertEqual(self.client.run_instances.call_count, 2)

    def test_wait_running(self):
        """Every instance is waited for"""
        waiter = self.client.get_waiter.return_value
        provisioner = Ec2Provisioner(config(), client=self.client)

        provisioner.wait_running(["i-1", "i-2"])

        self.client.get_waiter.assert_called_once_with("instance_running")
        self.assertEqual(
            [c.kwargs["InstanceIds"] for c in waiter.wait.call_args_list],
            [["i-1"], ["i-2"]],
        )

    def test_wait_running_failures_are_aggregated(self):
        """All instances are waited for before failures are raised"""
        waiter = self.client.get_waiter.return_value
        waiter.wait.side_effect = [None, RuntimeError("Max attempts exceeded"), None]
        provisioner = Ec2Provisioner(config(), client=self.client)

        with self.assertRaises(WaitRunningError) as cm:
            provisioner.wait_running(["i-1", "i-2", "i-3"])

        self.assertEqual(waiter.wait.call_count, 3)
        self.assertEqual(len(cm.exception.errors), 1)

    def test_terminate_single_request(self):
        """All instances are terminated using one request"""
        provisioner = Ec2Provisioner(config(), client=self.client)

        provisioner.terminate(("i-1", "i-2"))

        self.client.terminate_instances.assert_called_once_with(
            InstanceIds=["i-1", "i-2"]
        )

    def test_terminate_failure_propagates(self):
        """Rejected batch is an error"""
        self.client.terminate_instances.side_effect = RuntimeError("denied")
        provisioner = Ec2Provisioner(config(), client=self.client)

        with self.assertRaises(RuntimeError):
            provisioner.terminate(["i-1"])


if __name__ == "__main__":
    unittest.main()
