import json
import sys
import tempfile
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "core"))

from timeclock_core.config import AppConfig, ConfigError, load_config, require_device, save_config


class ConfigTests(unittest.TestCase):
    def test_load_default_when_missing(self):
        with tempfile.TemporaryDirectory() as tmp:
            cfg = load_config(Path(tmp) / "missing.json", env={})
            self.assertIsInstance(cfg, AppConfig)
            self.assertEqual(cfg.device.port, 4370)
            self.assertEqual(cfg.device.timeout_s, 10.0)
            self.assertEqual(cfg.remote_api.timeout_s, 30)
            self.assertEqual(cfg.sync.batch_size, 100)
            self.assertFalse(cfg.sync.auto_clear_device)
            self.assertTrue(cfg.sync.retry_failed)
            self.assertEqual(cfg.sync.max_retries, 3)

    def test_save_and_reload(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            cfg = load_config(path, env={})
            cfg.device.ip = "192.168.1.201"
            cfg.sync.batch_size = 250
            save_config(cfg, path)
            reloaded = load_config(path, env={})
            self.assertEqual(reloaded.device.ip, "192.168.1.201")
            self.assertEqual(reloaded.sync.batch_size, 250)

    def test_corrupt_file_falls_back_to_defaults(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            path.write_text("{not json", encoding="utf-8")
            cfg = load_config(path, env={})
            self.assertEqual(cfg.device.ip, "")

    def test_env_overrides_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            path.write_text(json.dumps({"device": {"ip": "10.0.0.1"}, "sync": {"batch_size": 20}}), encoding="utf-8")
            env = {
                "TIMECLOCK_DEVICE_IP": "10.0.0.9",
                "REMOTE_API_URL": "https://collector/api/",
                "REMOTE_API_KEY": "k",
                "AUTO_CLEAR_DEVICE": "true",
                "RETRY_FAILED_RECORDS": "0",
                "MAX_RETRIES": "5",
            }
            cfg = load_config(path, env=env)
            self.assertEqual(cfg.device.ip, "10.0.0.9")
            self.assertEqual(cfg.remote_api.url, "https://collector/api")
            self.assertEqual(cfg.sync.batch_size, 20)
            self.assertTrue(cfg.sync.auto_clear_device)
            self.assertFalse(cfg.sync.retry_failed)
            self.assertEqual(cfg.sync.max_retries, 5)

    def test_invalid_env_value_is_config_error(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ConfigError):
                load_config(Path(tmp) / "missing.json", env={"SYNC_BATCH_SIZE": "lots"})

    def test_values_are_normalized(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            raw = {
                "device": {"port": 0},
                "remote_api": {"endpoint_path": "attendance"},
                "sync": {"batch_size": 0, "max_retries": -2},
            }
            path.write_text(json.dumps(raw), encoding="utf-8")
            cfg = load_config(path, env={})
            self.assertEqual(cfg.device.port, 4370)
            self.assertEqual(cfg.remote_api.endpoint_path, "/attendance")
            self.assertEqual(cfg.sync.batch_size, 1)
            self.assertEqual(cfg.sync.max_retries, 0)

    def test_missing_device_ip_is_fatal(self):
        with self.assertRaises(ConfigError):
            require_device(AppConfig())


if __name__ == "__main__":
    unittest.main()
