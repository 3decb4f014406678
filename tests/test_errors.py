import unittest

from release_deployer.errors import (
    ConfigurationError,
    DeployerError,
    DeploymentError,
    ExecutionError,
    SSHConnectionError,
)


class ErrorTests(unittest.TestCase):
    def test_hierarchy(self) -> None:
        for cls in (ConfigurationError, SSHConnectionError, ExecutionError, DeploymentError):
            self.assertTrue(issubclass(cls, DeployerError))
        self.assertTrue(issubclass(DeployerError, RuntimeError))

    def test_execution_error_message(self) -> None:
        error = ExecutionError("false", 1, "boom")
        self.assertEqual(error.exit_code, 1)
        self.assertEqual(error.stderr, "boom")
        self.assertEqual(str(error), "Command failed with code 1: boom")
        self.assertEqual(str(ExecutionError("false", 2, "")), "Command failed with code 2")

    def test_deployment_error_carries_task_and_step(self) -> None:
        error = DeploymentError("disk full", "deploy:create:release_dir", 1)
        self.assertEqual(error.task, "deploy:create:release_dir")
        self.assertEqual(error.step, 1)
        self.assertIsNotNone(error.timestamp)
        self.assertEqual(str(error), "[deploy:create:release_dir #01] disk full")

    def test_connection_error_records_target(self) -> None:
        error = SSHConnectionError("refused", host="example.com", port=2222, username="deploy")
        self.assertEqual((error.host, error.port, error.username), ("example.com", 2222, "deploy"))


if __name__ == "__main__":
    unittest.main()
