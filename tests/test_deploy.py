"""
End-to-end deployment runs against an in-memory remote.
"""
import io
import json
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

from fakes import FakeRemote, Scripted, session_factory, write_tree

from sshdeploy.core.deploy_engine import (EXIT_CANCELLED, EXIT_ERROR, EXIT_OK, Deployer,
                                          DeployOptions)
from sshdeploy.utils.credentials import CredentialProtector

MTIME = 1_600_000_000
TEMP_DIR = "__upload1700000000000"
COPY_CMD = f"cp -prvT /srv/app/{TEMP_DIR} /srv/app"
REMOVE_CMD = f"rm -r /srv/app/{TEMP_DIR}"


class ReverseProtector(CredentialProtector):
    def encrypt(self, clear):
        return clear[::-1]

    def decrypt(self, protected):
        return protected[::-1]


class DeployTestCase(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmpdir.name)
        self.profile = {
            "isDefault": True,
            "hostName": "example.com",
            "userName": "deploy",
            "localPath": "publish",
            "remotePath": "/srv/app",
        }
        write_tree(self.dir / "publish", {
            "index.html": (b"<html></html>", MTIME),
            "readme.txt": (b"read me", MTIME + 100),
        })
        self.remote = FakeRemote("/srv/app")
        self.remote.add_file("/srv/app/index.html", size=13, mtime=MTIME)
        self.remote.add_file("/srv/app/old.log", size=500, mtime=MTIME)
        self.sessions = []
        self.out = io.StringIO()
        self.err = io.StringIO()

    def tearDown(self):
        self.tmpdir.cleanup()

    def write_config(self, **overrides):
        profile = dict(self.profile, **overrides)
        (self.dir / "sshDeploy.json").write_text(
            json.dumps({"profiles": {"live": profile}}, indent=2), encoding="utf-8")

    def read_config(self):
        return json.loads((self.dir / "sshDeploy.json").read_text(encoding="utf-8"))

    def deploy(self, *answers, **options) -> int:
        options.setdefault("hide_progress", True)
        read_password = options.pop("read_password", None)
        self.prompt = Scripted(*answers)
        deployer = Deployer(DeployOptions(**options),
                            session_factory=session_factory(self.remote, self.sessions),
                            prompt=self.prompt,
                            read_password=read_password or self.prompt,
                            protector=ReverseProtector(),
                            sleep=lambda _: None,
                            clock=lambda: 1_700_000_000.0,
                            cwd=self.dir)
        with redirect_stdout(self.out), redirect_stderr(self.err):
            return deployer.execute()

    def ops(self, *kinds):
        return [op for op in self.remote.ops if op[0] in kinds]


class TestDeploy(DeployTestCase):

    def test_uploads_new_files_and_deletes_confirmed_ones(self):
        self.write_config()
        self.assertEqual(self.deploy("d"), EXIT_OK)
        self.assertEqual(self.ops("put"), [("put", f"{TEMP_DIR}/readme.txt")])
        self.assertEqual(self.remote.files["/srv/app/readme.txt"],
                         {"size": 7, "mtime": float(MTIME + 100)})
        self.assertNotIn("/srv/app/old.log", self.remote.files)
        self.assertEqual(self.remote.commands, [COPY_CMD, REMOVE_CMD])
        self.assertNotIn(f"/srv/app/{TEMP_DIR}", self.remote.dirs)
        self.assertTrue(self.sessions[0].closed)
        self.assertIn("File only exists in remote: old.log (500 bytes)", self.out.getvalue())

    def test_second_run_is_up_to_date(self):
        self.write_config()
        self.assertEqual(self.deploy("d"), EXIT_OK)
        ops_before = len(self.remote.ops)
        self.assertEqual(self.deploy(), EXIT_OK)
        self.assertEqual(self.prompt.prompts, [])
        self.assertEqual(len(self.remote.ops), ops_before)
        self.assertIn("Remote already up-to-date.", self.out.getvalue())

    def test_keep_once_still_uploads(self):
        self.write_config()
        self.assertEqual(self.deploy("k"), EXIT_OK)
        self.assertIn("/srv/app/old.log", self.remote.files)
        self.assertIn("/srv/app/readme.txt", self.remote.files)
        self.assertNotIn("ignoredRemoteFiles", self.read_config()["profiles"]["live"])

    def test_keep_always_saves_the_ignore_pattern(self):
        self.write_config()
        self.assertEqual(self.deploy("a"), EXIT_OK)
        self.assertEqual(self.read_config()["profiles"]["live"]["ignoredRemoteFiles"],
                         ["old.log"])
        self.assertFalse((self.dir / "sshDeploy.json.bak").exists())
        self.assertEqual(self.deploy(), EXIT_OK)
        self.assertEqual(self.prompt.prompts, [])
        self.assertIn("/srv/app/old.log", self.remote.files)

    def test_cancel_changes_nothing(self):
        self.write_config(commands={"preUpload": ["echo pre"]})
        self.assertEqual(self.deploy("c"), EXIT_CANCELLED)
        self.assertEqual(self.ops("put", "remove", "rmdir", "mkdir", "run"), [])
        self.assertIn("/srv/app/old.log", self.remote.files)

    def test_end_of_input_cancels(self):
        self.write_config()
        self.assertEqual(self.deploy(), EXIT_CANCELLED)

    def test_lifecycle_order(self):
        self.write_config(commands={
            "preUpload": ["echo pre-upload"],
            "preInstall": ["echo pre-install"],
            "postInstall": ["echo post-install", "echo done"],
        })
        self.assertEqual(self.deploy("d"), EXIT_OK)
        self.assertEqual(self.ops("run", "put", "remove"), [
            ("run", "echo pre-upload"),
            ("put", f"{TEMP_DIR}/readme.txt"),
            ("run", "echo pre-install"),
            ("remove", "old.log"),
            ("run", COPY_CMD),
            ("run", REMOVE_CMD),
            ("run", "echo post-install"),
            ("run", "echo done"),
        ])

    def test_delete_only_run_skips_upload_and_swap(self):
        (self.dir / "publish" / "readme.txt").unlink()
        self.write_config()
        self.assertEqual(self.deploy("d"), EXIT_OK)
        self.assertEqual(self.ops("put", "mkdir"), [])
        self.assertEqual(self.remote.commands, [])
        self.assertNotIn("/srv/app/old.log", self.remote.files)

    def test_remote_directory_is_deleted_with_contents(self):
        self.remote.add_file("/srv/app/cache/a/1.bin", size=1)
        self.remote.add_file("/srv/app/cache/2.bin", size=1)
        self.write_config()
        self.assertEqual(self.deploy("d", "k"), EXIT_OK)
        self.assertFalse(any(d.startswith("/srv/app/cache") for d in self.remote.dirs))
        self.assertIn("/srv/app/old.log", self.remote.files)
        self.assertIn("Directory with 3 entries only exists in remote: cache/",
                      self.out.getvalue())

    def test_ignored_local_files_are_not_uploaded(self):
        self.write_config(ignoredLocalFiles=["*.txt"])
        self.assertEqual(self.deploy("k"), EXIT_OK)
        self.assertEqual(self.ops("put"), [])
        self.assertNotIn("/srv/app/readme.txt", self.remote.files)


class TestDeployFailures(DeployTestCase):

    def test_missing_config(self):
        self.assertEqual(self.deploy(), EXIT_ERROR)
        self.assertEqual(self.sessions, [])
        self.assertIn("No config file found.", self.err.getvalue())

    def test_unknown_profile(self):
        self.write_config()
        self.assertEqual(self.deploy(profile_name="prod"), EXIT_ERROR)
        self.assertEqual(self.sessions, [])

    def test_bad_remote_path(self):
        self.write_config(remotePath="/srv/missing")
        self.assertEqual(self.deploy(), EXIT_ERROR)
        self.assertIn("Error changing to remote directory", self.err.getvalue())
        self.assertTrue(self.sessions[0].closed)

    def test_failed_copy_keeps_staged_files(self):
        self.remote.command_results[COPY_CMD] = (1, "", "cp: disk full\n")
        self.write_config(commands={"postInstall": ["echo post-install"]})
        self.assertEqual(self.deploy("d"), EXIT_ERROR)
        self.assertIn(f"/srv/app/{TEMP_DIR}/readme.txt", self.remote.files)
        self.assertNotIn("echo post-install", self.remote.commands)
        self.assertIn("New files could not be copied.", self.err.getvalue())
        self.assertIn("cp: disk full", self.err.getvalue())

    def test_failed_cleanup_is_not_an_error(self):
        self.remote.command_results[REMOVE_CMD] = (1, "", "")
        self.write_config()
        self.assertEqual(self.deploy("d"), EXIT_OK)
        self.assertIn("Uploaded temporary files could not be deleted.", self.err.getvalue())

    def test_failed_upload_stops_before_deleting(self):
        self.remote.fail_put.add("readme.txt")
        self.write_config(commands={"preInstall": ["echo pre-install"]})
        self.assertEqual(self.deploy("d"), EXIT_ERROR)
        self.assertIn("/srv/app/old.log", self.remote.files)
        self.assertEqual(self.remote.commands, [])
        self.assertIn('Error uploading file "readme.txt"', self.err.getvalue())

    def test_failed_pre_upload_command(self):
        self.remote.command_results["false"] = (1, "", "")
        self.write_config(commands={"preUpload": ["false", "echo never"]})
        self.assertEqual(self.deploy("d"), EXIT_ERROR)
        self.assertEqual(self.remote.commands, ["false"])
        self.assertEqual(self.ops("put"), [])
        self.assertIn("Pre-upload command failed: false", self.err.getvalue())


class TestEncryptPassword(DeployTestCase):

    def test_stores_encrypted_password(self):
        self.write_config()
        rc = self.deploy(encrypt_password=True, read_password=lambda _: "hunter2")
        self.assertEqual(rc, EXIT_OK)
        self.assertEqual(self.read_config()["profiles"]["live"]["password"], "$$crypt$$2retnuh")
        self.assertEqual(self.sessions, [])

    def test_space_removes_password(self):
        self.write_config(password="$$crypt$$old")
        self.assertEqual(self.deploy(encrypt_password=True, read_password=lambda _: " "), EXIT_OK)
        self.assertNotIn("password", self.read_config()["profiles"]["live"])

    def test_empty_answer_keeps_password(self):
        self.write_config(password="$$crypt$$old")
        prompts = []
        read_password = lambda p: prompts.append(p) or ""
        self.assertEqual(self.deploy(encrypt_password=True, read_password=read_password), EXIT_OK)
        self.assertEqual(self.read_config()["profiles"]["live"]["password"], "$$crypt$$old")
        self.assertEqual(prompts, ["Password [****] (space to delete): "])


if __name__ == "__main__":
    unittest.main()
