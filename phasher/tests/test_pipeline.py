#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
End-to-end tests for the scanner -> worker -> sink pipeline.
"""

import io
import json
import os
import sqlite3
from unittest.mock import MagicMock, patch

import pytest
from PIL import Image

from phasher.config import ConfigError, Mode, PipelineConfig
from phasher.database.manager import FingerprintStore
from phasher.models import Fingerprint
from phasher.scanning.pipeline import Pipeline
from phasher.tests.fixtures.frames import count_rows, fake_compute, fake_decode, make_frames


def config(mode, paths, db=None, **kwargs):
    return PipelineConfig(mode=mode, paths=tuple(str(p) for p in paths), db_path=db, **kwargs)


def run(cfg, output=None, as_json=False, compute=fake_compute, decode=fake_decode):
    return Pipeline(cfg, compute=compute, decode=decode, output=output, as_json=as_json).run()


class TestStoreAndQuery:

    def test_store_250_frames_then_query(self, tmp_path, db_path):
        """250 frames commit as 100/100/50 and each one then finds itself."""
        d = make_frames(tmp_path / "clip", [f"img-{i}.jpg" for i in range(250)])
        sizes = []
        original = FingerprintStore.insert_batch

        def recording(self, rows):
            rows = list(rows)
            sizes.append(len(rows))
            return original(self, rows)

        with patch.object(FingerprintStore, "insert_batch", recording):
            stats = run(config(Mode.STORE, [d], db_path, workers=4))

        assert sorted(sizes) == [50, 100, 100]
        assert stats.batches_committed == 3
        assert stats.rows_inserted == 250
        assert count_rows(db_path) == 250

        out = io.StringIO()
        qstats = run(config(Mode.QUERY, [d], db_path, workers=4), output=out, as_json=True)

        lines = [json.loads(line) for line in out.getvalue().splitlines()]
        assert len(lines) == 250
        key = os.path.join(str(d), "img")
        for rec in lines:
            frame = int(rec["path"].rsplit("-", 1)[1][:-len(".jpg")])
            assert {"key": key, "frame": frame} in rec["matches"]
            assert len(rec["fingerprint"]) == 32
        assert qstats.lookups == 250
        assert qstats.lookups_matched == 250

    def test_storing_twice_is_idempotent(self, tmp_path, db_path):
        d = make_frames(tmp_path / "clip", ["a-1.jpg", "a-2.jpg"])
        run(config(Mode.STORE, [d], db_path))
        stats = run(config(Mode.STORE, [d], db_path))

        assert stats.rows_inserted == 0
        assert stats.rows_duplicate == 2
        assert stats.batches_failed == 0
        assert count_rows(db_path) == 2

    def test_directory_spellings_share_keys(self, tmp_path, db_path, monkeypatch):
        make_frames(tmp_path / "clips", ["img-1.jpg", "img-2.jpg"])
        monkeypatch.chdir(tmp_path)

        for spelling in ("clips", "./clips", "clips/"):
            run(config(Mode.STORE, [spelling], db_path))

        conn = sqlite3.connect(str(db_path))
        try:
            keys = {k for (k,) in conn.execute("SELECT fullpath FROM key_hashes")}
        finally:
            conn.close()
        assert keys == {os.path.join("clips", "img")}
        assert count_rows(db_path) == 2

    def test_key_file_shared_across_directories(self, tmp_path, db_path):
        d1 = make_frames(tmp_path / "part1", ["x-1.jpg"])
        d2 = make_frames(tmp_path / "part2", ["y-2.jpg"])
        for d in (d1, d2):
            (d / "KEY").write_text("movie\n")

        run(config(Mode.STORE, [d1, d2], db_path, key_file="KEY"))

        conn = sqlite3.connect(str(db_path))
        try:
            rows = conn.execute("SELECT fullpath, frame FROM key_hashes ORDER BY frame").fetchall()
        finally:
            conn.close()
        assert rows == [("movie", 1), ("movie", 2)]

    def test_query_without_matches_prints_empty_list(self, tmp_path, db_path):
        FingerprintStore(db_path).close()
        d = make_frames(tmp_path / "new", ["n-1.jpg"])
        out = io.StringIO()

        stats = run(config(Mode.QUERY, [d], db_path), output=out)

        line = out.getvalue().strip()
        assert line.startswith(os.path.join(str(d), "n-1.jpg") + " ")
        assert line.endswith("[]")
        assert stats.lookups == 1
        assert stats.lookups_matched == 0

    def test_lookup_errors_are_contained(self, tmp_path, db_path):
        d = make_frames(tmp_path / "q", ["a-1.jpg", "a-2.jpg"])
        out = io.StringIO()
        with patch.object(FingerprintStore, "lookup", side_effect=sqlite3.OperationalError("disk I/O error")):
            stats = run(config(Mode.QUERY, [d], db_path), output=out)
        assert stats.lookups_failed == 2
        assert out.getvalue() == ""


class TestShowMode:

    def test_show_with_empty_sibling_directory(self, tmp_path):
        """An empty input directory is logged and skipped while the other one completes."""
        empty = tmp_path / "empty"
        empty.mkdir()
        d = make_frames(tmp_path / "d", ["img-1.jpg", "img-2.jpg", "note.txt"])
        out = io.StringIO()

        stats = run(config(Mode.SHOW, [empty, d], workers=2), output=out)

        lines = sorted(out.getvalue().splitlines())
        assert len(lines) == 2
        assert lines[0].split() == [os.path.join(str(d), "img-1.jpg"), fake_compute(fake_decode("img-1.jpg")).hex()]
        assert stats.dirs_failed == 1
        assert stats.dirs_scanned == 1
        assert stats.shown == 2

    def test_show_does_not_need_store(self, tmp_path):
        d = make_frames(tmp_path / "d", ["img-1.jpg"])
        with patch.object(FingerprintStore, "__init__", side_effect=AssertionError("store opened")):
            stats = run(config(Mode.SHOW, [d]), output=io.StringIO())
        assert stats.shown == 1

    def test_real_images(self, tmp_path):
        d = make_frames(tmp_path / "d", ["f-1.jpg", "f-2.jpg", "f-3.jpg"], content=True)
        out = io.StringIO()

        Pipeline(config(Mode.SHOW, [d], workers=3), output=out).run()

        fps = [Fingerprint.from_hex(line.split()[1]) for line in out.getvalue().splitlines()]
        assert len(fps) == 3
        assert all(len(fp.to_bytes()) == 16 for fp in fps)

    def test_write_error_is_fatal(self, tmp_path):
        d = make_frames(tmp_path / "d", [f"img-{i}.jpg" for i in range(20)])
        broken = MagicMock()
        broken.write.side_effect = OSError("broken pipe")

        with pytest.raises(OSError, match="broken pipe"):
            run(config(Mode.SHOW, [d], workers=4), output=broken)


class TestWorkers:

    def test_fingerprint_failure_drops_only_that_image(self, tmp_path):
        d = make_frames(tmp_path / "d", ["a-1.jpg", "a-2.jpg", "a-3.jpg"])

        def flaky(image):
            if image.info["source"] == "a-2.jpg":
                raise RuntimeError("hash failed")
            return fake_compute(image)

        out = io.StringIO()
        stats = run(config(Mode.SHOW, [d], workers=2), output=out, compute=flaky)

        assert stats.fingerprinted == 2
        assert stats.fingerprint_failed == 1
        assert "a-2.jpg" not in out.getvalue()

    def test_wrong_fingerprint_type_is_dropped(self, tmp_path):
        d = make_frames(tmp_path / "d", ["a-1.jpg"])
        stats = run(config(Mode.SHOW, [d]), output=io.StringIO(), compute=lambda image: b"\x00" * 32)
        assert stats.fingerprint_failed == 1
        assert stats.shown == 0

    def test_decoded_images_are_released(self, tmp_path):
        d = make_frames(tmp_path / "d", [f"a-{i}.jpg" for i in range(10)])
        images = []

        def tracking_decode(path):
            img = fake_decode(path)
            img.close = MagicMock(wraps=img.close)
            images.append(img)
            return img

        def flaky(image):
            if image.info["source"] == "a-3.jpg":
                raise RuntimeError("hash failed")
            return fake_compute(image)

        run(config(Mode.SHOW, [d], workers=3), output=io.StringIO(), compute=flaky, decode=tracking_decode)

        assert len(images) == 10
        assert all(img.close.called for img in images)


class TestStartupErrors:

    @pytest.mark.parametrize("kwargs", [
        dict(mode=Mode.STORE, paths=("d",)),
        dict(mode=Mode.QUERY, paths=("d",)),
        dict(mode=Mode.SHOW, paths=()),
        dict(mode=Mode.SHOW, paths=("d",), workers=0),
        dict(mode=Mode.STORE, paths=("d",), db_path="x.db", batch_size=0),
        dict(mode=Mode.STORE, paths=("d",), db_path="x.db", db_timeout=-1),
        dict(mode=Mode.SHOW, paths=("d",), key_file="  "),
    ])
    def test_invalid_config(self, kwargs):
        with patch("phasher.scanning.pipeline.PathScanner") as scanner:
            with pytest.raises(ConfigError):
                Pipeline(PipelineConfig(**kwargs)).run()
        scanner.assert_not_called()

    def test_store_open_failure_aborts_before_scanning(self, tmp_path):
        cfg = config(Mode.STORE, [tmp_path], tmp_path / "missing" / "dir" / "h.db")
        with patch("phasher.scanning.pipeline.PathScanner") as scanner:
            with pytest.raises(sqlite3.OperationalError):
                Pipeline(cfg).run()
        scanner.assert_not_called()
