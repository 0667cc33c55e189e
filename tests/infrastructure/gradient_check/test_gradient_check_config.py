import unittest
from unittest import mock

from keygrad.infrastructure.gradient_check import GradientCheckConfig


class TestGradientCheckConfig(unittest.TestCase):
    def test_defaults(self) -> None:
        config = GradientCheckConfig()
        self.assertEqual(config.atol, 1e-5)
        self.assertEqual(config.rtol, 1e-4)
        self.assertEqual(config.eps, 1e-3)
        self.assertTrue(config.detect_leaks)

    def test_from_empty_env_gives_defaults(self) -> None:
        self.assertEqual(GradientCheckConfig.from_env({}), GradientCheckConfig())

    def test_from_env_overrides(self) -> None:
        config = GradientCheckConfig.from_env(
            {
                "KEYGRAD_CHECK_ATOL": "1e-3",
                "KEYGRAD_CHECK_RTOL": "0",
                "KEYGRAD_CHECK_EPS": "0.01",
                "KEYGRAD_LEAK_DETECTION": "0",
            }
        )
        self.assertEqual(config.atol, 1e-3)
        self.assertEqual(config.rtol, 0.0)
        self.assertEqual(config.eps, 0.01)
        self.assertFalse(config.detect_leaks)

    def test_leak_detection_flag_values(self) -> None:
        for value in ("false", "False", "FALSE", ""):
            env = {"KEYGRAD_LEAK_DETECTION": value}
            self.assertFalse(GradientCheckConfig.from_env(env).detect_leaks)
        for value in ("1", "true", "yes"):
            env = {"KEYGRAD_LEAK_DETECTION": value}
            self.assertTrue(GradientCheckConfig.from_env(env).detect_leaks)

    def test_reads_process_environment_by_default(self) -> None:
        with mock.patch.dict("os.environ", {"KEYGRAD_CHECK_ATOL": "0.5"}):
            self.assertEqual(GradientCheckConfig.from_env().atol, 0.5)

    def test_invalid_values(self) -> None:
        with self.assertRaises(ValueError):
            GradientCheckConfig.from_env({"KEYGRAD_CHECK_ATOL": "tight"})
        with self.assertRaises(ValueError):
            GradientCheckConfig(atol=-1.0)
        with self.assertRaises(ValueError):
            GradientCheckConfig(rtol=-1.0)
        with self.assertRaises(ValueError):
            GradientCheckConfig(eps=0.0)


if __name__ == "__main__":
    unittest.main()
