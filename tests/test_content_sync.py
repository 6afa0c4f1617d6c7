"""
End-to-end tests for ContentSync against a local content server.
"""

import json
import time
from unittest import mock

import pytest

from packsync.core.cancel import CancelToken
from packsync.core.progress import ProgressAggregator
from packsync.manifest.assets import AssetIndexInfo
from packsync.manifest.manifest import ContentManifest
from packsync.sync.checksum import hash_file
from packsync.sync.content_sync import ContentSync
from packsync.sync.entries import CheckEntry
from packsync.sync.state import SyncState
from packsync.sync.status import SyncStatus

from conftest import CancelAfter, free_port, sha1_of

FILES = {
    "mods/a.jar": b"mod a",
    "mods/b.jar": b"mod b",
    "config/opts.txt": b"default options",
}


def make_manifest(version="1", files=FILES, name="pack"):
    return ContentManifest(
        modpack_name=name,
        modpack_version=version,
        include=["mods"],
        include_no_overwrite=["config"],
        objects={key: sha1_of(data) for key, data in files.items()},
    )


@pytest.fixture
def server(content_server):
    for key, data in FILES.items():
        content_server.files[f"pack/{key}"] = data
    return content_server


@pytest.fixture
def app(config, server):
    return ContentSync(config, progress=ProgressAggregator())


def content_dir(app):
    return app.content_dir(make_manifest())


class TestSync:

    def test_fresh_sync(self, app):
        manifest = make_manifest()

        outcome = app.sync(manifest)

        assert outcome.status is SyncStatus.SYNCED
        assert outcome.downloaded == 3
        for key, data in FILES.items():
            assert (content_dir(app) / key).read_bytes() == data
        assert app.check(manifest) is SyncStatus.SYNCED
        assert app.progress.snapshot().finished

    def test_record_survives_restart(self, app, config):
        app.sync(make_manifest())
        restarted = ContentSync(config)
        assert restarted.check(make_manifest()) is SyncStatus.SYNCED
        assert restarted.check(make_manifest(version="2")) is SyncStatus.NOT_SYNCED

    def test_up_to_date_skips_all_work(self, app, server):
        app.sync(make_manifest())
        server.requests.clear()
        (content_dir(app) / "mods/a.jar").write_bytes(b"corrupted")

        outcome = app.sync(make_manifest())

        assert outcome.status is SyncStatus.SYNCED
        assert server.requests == []
        assert (content_dir(app) / "mods/a.jar").read_bytes() == b"corrupted"

    def test_rescan_is_idempotent(self, app, server):
        app.sync(make_manifest())
        server.requests.clear()

        outcome = app.rescan(make_manifest())

        assert outcome.status is SyncStatus.SYNCED
        assert outcome.downloaded == 0
        assert outcome.plan.kept == 3
        assert server.requests == []

    def test_rescan_repairs_corruption(self, app, server):
        app.sync(make_manifest())
        (content_dir(app) / "mods/a.jar").write_bytes(b"corrupted")
        server.requests.clear()

        app.rescan(make_manifest())

        assert (content_dir(app) / "mods/a.jar").read_bytes() == FILES["mods/a.jar"]
        assert server.requests == ["pack/mods/a.jar"]

    def test_new_version_removes_orphans_and_keeps_user_files(self, app, server):
        app.sync(make_manifest())
        root = content_dir(app)
        (root / "config/user.txt").write_text("mine")
        (root / "config/opts.txt").write_text("edited")
        files = {k: v for k, v in FILES.items() if k != "mods/b.jar"}

        outcome = app.sync(make_manifest(version="2", files=files))

        assert outcome.status is SyncStatus.SYNCED
        assert outcome.deleted == 1
        assert not (root / "mods/b.jar").exists()
        assert (root / "config/user.txt").read_text() == "mine"
        assert (root / "config/opts.txt").read_text() == "edited"

    def test_force_overwrite_restores_protected(self, app):
        app.sync(make_manifest())
        root = content_dir(app)
        (root / "config/opts.txt").write_text("edited")

        app.sync(make_manifest(), force_overwrite=True, ignore_version=True)

        assert (root / "config/opts.txt").read_bytes() == FILES["config/opts.txt"]


class TestFailures:

    def test_missing_object_is_sync_error(self, app, server):
        del server.files["pack/mods/b.jar"]

        outcome = app.sync(make_manifest())

        assert outcome.status is SyncStatus.SYNC_ERROR
        assert not outcome.ready_for_launch
        assert app.check(make_manifest()) is SyncStatus.NOT_SYNCED

    def test_server_error_not_recorded(self, app, server):
        server.status_overrides["pack/mods/a.jar"] = 500

        outcome = app.sync(make_manifest())

        assert outcome.status is SyncStatus.SYNC_ERROR
        assert "500" in outcome.detail
        assert SyncState(app.state.path).load().names() == []

    def test_cancelled(self, app):
        token = CancelToken()
        token.cancel()

        outcome = app.sync(make_manifest(), cancel=token)

        assert outcome.status is SyncStatus.CANCELLED
        assert app.check(make_manifest()) is SyncStatus.NOT_SYNCED
        assert app.progress.snapshot().finished

    def test_offline(self, app, config):
        app.sync(make_manifest())
        config.server_base = f"http://127.0.0.1:{free_port()}"
        offline = ContentSync(config)
        files = {**FILES, "mods/c.jar": b"mod c"}

        outcome = offline.sync(make_manifest(version="2", files=files))

        assert outcome.status is SyncStatus.SYNC_ERROR_OFFLINE
        assert offline.status_offline("pack") is SyncStatus.SYNCED
        assert offline.status_offline("never-synced") is SyncStatus.NOT_SYNCED

    def test_unsafe_manifest_is_sync_error(self, app):
        manifest = make_manifest(files={"../../evil": b"x"})
        assert app.sync(manifest).status is SyncStatus.SYNC_ERROR

    def test_name_too_long_is_sync_error(self, app, server):
        """A local path the filesystem rejects is reported, not raised."""
        key = "mods/" + "a" * 300
        server.files[f"pack/{key}"] = b"long"
        (content_dir(app) / "mods").mkdir(parents=True)

        outcome = app.sync(make_manifest(files={key: b"long"}))

        assert outcome.status is SyncStatus.SYNC_ERROR
        assert app.check(make_manifest()) is SyncStatus.NOT_SYNCED

    def test_stray_os_error_is_sync_error(self, app):
        denied = PermissionError(13, "Permission denied", "/locked")
        with mock.patch("packsync.sync.content_sync.delete_files", side_effect=denied):
            outcome = app.sync(make_manifest())

        assert outcome.status is SyncStatus.SYNC_ERROR
        assert "Permission denied" in outcome.detail
        assert app.progress.snapshot().finished

    def test_cancel_during_verification(self, config, server):
        """Cancelling while hashing stops before most files are read."""
        files = {f"mods/{i}.jar": f"new {i}".encode() for i in range(200)}
        token = CancelToken()
        config.hash_workers = 1
        app = ContentSync(config, progress=CancelAfter(token, 1))
        root = content_dir(app)
        (root / "mods").mkdir(parents=True)
        for key in files:
            (root / key).write_bytes(b"stale")
        hashed = []

        def slow_hash(path, algorithm):
            time.sleep(0.005)
            hashed.append(path)
            return hash_file(path, algorithm)

        with mock.patch("packsync.sync.checksum.hash_file", side_effect=slow_hash):
            outcome = app.sync(make_manifest(files=files), cancel=token)

        assert outcome.status is SyncStatus.CANCELLED
        assert len(hashed) < 20
        assert server.requests == []
        assert app.check(make_manifest()) is SyncStatus.NOT_SYNCED


class TestSyncMany:

    def test_shared_file_protected_by_other_set(self, app):
        """A file one set protects is never deleted as another set's orphan."""
        other = ContentManifest(
            modpack_name="other",
            modpack_version="1",
            include_no_overwrite=["mods"],
        )
        app.sync(make_manifest())
        shared = content_dir(app)
        # Put both sets in one directory by giving them the same content dir
        app.content_dir = lambda manifest: shared
        files = {k: v for k, v in FILES.items() if k != "mods/b.jar"}

        outcome = app.sync_many([make_manifest(version="2", files=files), other])

        assert outcome.status is SyncStatus.SYNCED
        assert (shared / "mods/b.jar").exists()

    def test_conflicting_digests_rejected(self, app, server):
        """Two sets that want different bytes at one path fail before any change."""
        app.sync(make_manifest())
        shared = content_dir(app)
        app.content_dir = lambda manifest: shared
        other = make_manifest(name="other", files={"mods/a.jar": b"other a"})
        server.requests.clear()

        outcome = app.sync_many([make_manifest(version="2"), other])

        assert outcome.status is SyncStatus.SYNC_ERROR
        assert "mods/a.jar" in outcome.detail
        assert server.requests == []
        assert (shared / "mods/b.jar").exists()
        assert app.check(make_manifest(version="2")) is SyncStatus.NOT_SYNCED


class TestSyncCheckEntries:

    def test_only_failures_fetched(self, app, server, temp_dir):
        server.files["libs/one.jar"] = b"one"
        server.files["libs/two.jar"] = b"two"
        libs = temp_dir / "libs"
        libs.mkdir()
        (libs / "one.jar").write_bytes(b"one")
        entries = [
            CheckEntry(path=libs / "one.jar", url=f"{server.url}/libs/one.jar", sha1=sha1_of(b"one"), size=3),
            CheckEntry(path=libs / "two.jar", url=f"{server.url}/libs/two.jar", sha1=sha1_of(b"two"), size=3),
        ]

        outcome = app.sync_check_entries(entries)

        assert outcome.status is SyncStatus.SYNCED
        assert outcome.downloaded == 1
        assert server.requests == ["libs/two.jar"]
        assert (libs / "two.jar").read_bytes() == b"two"


class TestSyncAssets:

    OBJECTS = {"sounds/a.ogg": b"sound a", "lang/en.json": b"{}"}

    @pytest.fixture
    def assets_server(self, server, config):
        config.resources_base = f"{server.url}/res"
        objects = {name: {"hash": sha1_of(data), "size": len(data)} for name, data in self.OBJECTS.items()}
        index = {"objects": objects}
        server.files["assets/indexes/5.json"] = json.dumps(index).encode()
        for data in self.OBJECTS.values():
            digest = sha1_of(data)
            server.files[f"res/{digest[:2]}/{digest}"] = data
        return server

    def index_info(self, app):
        manifest = make_manifest()
        manifest.asset_index = "5"
        return AssetIndexInfo.for_content_set(manifest, app.config)

    def test_missing_objects_fetched(self, app, assets_server):
        have = sha1_of(b"sound a")
        present = app.assets_dir / "objects" / have[:2] / have
        present.parent.mkdir(parents=True)
        present.write_bytes(b"sound a")
        want = sha1_of(b"{}")

        outcome = app.sync_assets(self.index_info(app))

        assert outcome.status is SyncStatus.SYNCED
        assert outcome.downloaded == 1
        assert assets_server.requests == ["assets/indexes/5.json", f"res/{want[:2]}/{want}"]
        assert (app.assets_dir / "objects" / want[:2] / want).read_bytes() == b"{}"

    def test_index_cached_between_runs(self, app, assets_server):
        info = self.index_info(app)
        app.sync_assets(info)
        assets_server.requests.clear()

        outcome = app.sync_assets(info)

        assert outcome.status is SyncStatus.SYNCED
        assert outcome.downloaded == 0
        assert assets_server.requests == []
        assert info.local_path(app.assets_dir).exists()

    def test_missing_object_is_sync_error(self, app, assets_server):
        digest = sha1_of(b"sound a")
        del assets_server.files[f"res/{digest[:2]}/{digest}"]

        outcome = app.sync_assets(self.index_info(app))

        assert outcome.status is SyncStatus.SYNC_ERROR

    def test_unreachable_index_is_offline(self, app):
        info = AssetIndexInfo(id="5", url=f"http://127.0.0.1:{free_port()}/5.json")

        outcome = app.sync_assets(info)

        assert outcome.status is SyncStatus.SYNC_ERROR_OFFLINE
        assert not info.local_path(app.assets_dir).exists()
