"""
Tests for config file discovery, parsing, profile selection and saving.
"""
import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stderr
from pathlib import Path

import yaml

from sshdeploy.config import (ConfigFile, Profile, find_config_file, load_config_file,
                              resolve_path)
from sshdeploy.exceptions import ConfigError

LIVE = {
    "isDefault": True,
    "hostName": "example.com",
    "userName": "deploy",
    "localPath": "bin/publish",
    "remotePath": "/srv/www/app",
    "ignoredRemoteFiles": ["logs/**"],
    "commands": {"postInstall": ["systemctl restart app"]},
}
STAGING = {
    "hostName": "staging.example.com",
    "port": 2222,
    "userName": "deploy",
    "localPath": "bin/publish",
    "remotePath": "/srv/staging",
}


class ConfigTestCase(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmpdir.name)

    def tearDown(self):
        self.tmpdir.cleanup()

    def write_json(self, data, name="sshDeploy.json"):
        path = self.dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        return path


class TestFindConfigFile(ConfigTestCase):

    def test_explicit_path(self):
        path = self.write_json({"profiles": {}}, "custom.json")
        self.assertEqual(find_config_file(str(path)), path)

    def test_explicit_path_must_exist(self):
        with self.assertRaises(ConfigError) as ctx:
            find_config_file(str(self.dir / "nope.json"))
        self.assertIn("Specified config file not found", str(ctx.exception))

    def test_searches_working_directory_then_properties(self):
        props = self.write_json({"profiles": {}}, os.path.join("Properties", "sshDeploy.json"))
        self.assertEqual(find_config_file(cwd=self.dir), props)
        top = self.write_json({"profiles": {}})
        self.assertEqual(find_config_file(cwd=self.dir), top)

    def test_nothing_found(self):
        with self.assertRaises(ConfigError) as ctx:
            find_config_file(cwd=self.dir)
        self.assertEqual(str(ctx.exception), "No config file found.")


class TestLoadConfigFile(ConfigTestCase):

    def test_json_with_byte_order_mark(self):
        path = self.dir / "sshDeploy.json"
        path.write_bytes(b"\xef\xbb\xbf" + json.dumps({"profiles": {"live": LIVE}}).encode())
        self.assertEqual(load_config_file(path).profile_names, ["live"])

    def test_yaml(self):
        path = self.dir / "sshDeploy.yaml"
        path.write_text(yaml.safe_dump({"profiles": {"live": LIVE}}), encoding="utf-8")
        profile = load_config_file(path).get_profile()
        self.assertEqual(profile.commands.post_install, ["systemctl restart app"])

    def test_invalid_json(self):
        path = self.dir / "sshDeploy.json"
        path.write_text("{ not json", encoding="utf-8")
        with self.assertRaises(ConfigError) as ctx:
            load_config_file(path)
        self.assertTrue(str(ctx.exception).startswith("Error parsing config file"))

    def test_top_level_must_be_an_object(self):
        path = self.write_json(["live"])
        with self.assertRaises(ConfigError):
            load_config_file(path)


class TestGetProfile(unittest.TestCase):

    def config(self, profiles):
        return ConfigFile(Path("sshDeploy.json"), {"profiles": profiles})

    def test_by_name(self):
        profile = self.config({"live": LIVE, "staging": STAGING}).get_profile("staging")
        self.assertEqual(profile.host_name, "staging.example.com")
        self.assertEqual(profile.effective_port, 2222)

    def test_default_profile(self):
        profile = self.config({"staging": STAGING, "live": LIVE}).get_profile()
        self.assertEqual(profile.name, "live")
        self.assertEqual(profile.effective_port, 22)
        self.assertEqual(profile.ignored_remote_files, ["logs/**"])

    def test_single_profile(self):
        self.assertEqual(self.config({"staging": STAGING}).get_profile().name, "staging")

    def test_no_default_among_many(self):
        with self.assertRaises(ConfigError):
            self.config({"a": STAGING, "b": STAGING}).get_profile()

    def test_unknown_name(self):
        with self.assertRaises(ConfigError) as ctx:
            self.config({"live": LIVE}).get_profile("prod")
        self.assertIn('Profile "prod" is not defined', str(ctx.exception))

    def test_missing_required_keys(self):
        with self.assertRaises(ConfigError) as ctx:
            self.config({"live": {"hostName": "h"}}).get_profile()
        self.assertIn("userName", str(ctx.exception))

    def test_profile_is_loaded_once(self):
        config = self.config({"live": LIVE})
        self.assertIs(config.get_profile(), config.get_profile("live"))


class TestSave(ConfigTestCase):

    def test_save_writes_changes_and_removes_backup(self):
        path = self.write_json({"comment": "keep me", "profiles": {
            "live": dict(LIVE, customKey=1), "staging": STAGING}})
        config = load_config_file(path)
        profile = config.get_profile()
        profile.ignored_remote_files.append("uploads/")
        self.assertTrue(config.save())

        saved = json.loads(path.read_text(encoding="utf-8"))
        self.assertEqual(saved["comment"], "keep me")
        self.assertEqual(saved["profiles"]["live"]["ignoredRemoteFiles"],
                         ["logs/**", "uploads/"])
        self.assertEqual(saved["profiles"]["live"]["customKey"], 1)
        self.assertEqual(saved["profiles"]["staging"], STAGING)
        self.assertFalse((self.dir / "sshDeploy.json.bak").exists())

    def test_cleared_password_is_removed(self):
        path = self.write_json({"profiles": {"live": dict(LIVE, password="old")}})
        config = load_config_file(path)
        config.get_profile().password = ""
        config.save(throw_on_error=True)
        saved = json.loads(path.read_text(encoding="utf-8"))
        self.assertNotIn("password", saved["profiles"]["live"])

    def test_yaml_round_trip(self):
        path = self.dir / "sshDeploy.yml"
        path.write_text(yaml.safe_dump({"profiles": {"live": LIVE}}), encoding="utf-8")
        config = load_config_file(path)
        config.get_profile().ignored_local_files.append("*.pdb")
        config.save(throw_on_error=True)
        reloaded = load_config_file(path).get_profile()
        self.assertEqual(reloaded.ignored_local_files, ["*.pdb"])
        self.assertEqual(reloaded.remote_path, "/srv/www/app")

    def test_failed_save_reports_and_returns_false(self):
        config = ConfigFile(self.dir / "missing" / "sshDeploy.json", {"profiles": {"live": LIVE}})
        config.get_profile()
        with redirect_stderr(io.StringIO()) as err:
            self.assertFalse(config.save())
        self.assertIn("Error backing up config file", err.getvalue())

    def test_failed_save_can_raise(self):
        config = ConfigFile(self.dir / "missing" / "sshDeploy.json", {"profiles": {"live": LIVE}})
        with self.assertRaises(ConfigError):
            config.save(throw_on_error=True)


class TestResolvePath(ConfigTestCase):

    def test_relative_to_config_directory(self):
        config_path = self.dir / "Properties" / "sshDeploy.json"
        self.assertEqual(resolve_path("../bin/publish", config_path),
                         self.dir.resolve() / "Properties" / ".." / "bin" / "publish")

    def test_backslashes_and_absolute_paths(self):
        self.assertEqual(resolve_path("/srv\\app", self.dir / "x.json"), Path("/srv/app"))

    def test_profile_round_trip_is_stable(self):
        profile = Profile.from_dict("live", LIVE)
        self.assertEqual(Profile.from_dict("live", profile.to_dict()), profile)


if __name__ == "__main__":
    unittest.main()
