"""
tests/test_archive.py — Bundle archive codec and artifact naming.
"""

import io
import os
import sys
import tarfile
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from airlift.bundle.archive import read_archive, write_archive
from airlift.bundle.naming import (
    chart_filename, decode_image_name, encode_image_ref, image_filename,
)
from airlift.bundle.unpacker import unpack_bundle
from airlift.core.errors import ArchiveError


def make_tree(root):
    (root / "images").mkdir(parents=True)
    (root / "charts" / "nested" / "deep").mkdir(parents=True)
    (root / "manifest.yaml").write_text("images:\n  - nginx:1.25\n")
    (root / "images" / "nginx_1.25.tar").write_bytes(b"\x00\x01binary\xff" * 100)
    (root / "charts" / "nested" / "deep" / "file.txt").write_text("deep")
    (root / "charts" / "empty").mkdir()
    os.symlink("nested/deep/file.txt", root / "charts" / "link")
    os.symlink("../does-not-exist", root / "charts" / "dangling")


def snapshot(root):
    """Relative path → ("dir",) / ("file", bytes) / ("link", target)."""
    result = {}
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            p = os.path.join(dirpath, name)
            rel = os.path.relpath(p, root)
            if os.path.islink(p):
                result[rel] = ("link", os.readlink(p))
            elif os.path.isdir(p):
                result[rel] = ("dir",)
            else:
                with open(p, "rb") as f:
                    result[rel] = ("file", f.read())
    return result


# ─────────────────────────────────────────────
# ROUND TRIP
# ─────────────────────────────────────────────
class TestRoundTrip:
    def test_tree_is_reproduced(self, tmp_path):
        src = tmp_path / "src"
        make_tree(src)
        bundle = tmp_path / "bundle.tar.gz"
        write_archive(src, bundle)

        out = tmp_path / "out"
        skipped = read_archive(bundle, out)

        assert skipped == []
        assert snapshot(out) == snapshot(src)

    def test_symlink_target_preserved_not_followed(self, tmp_path):
        src = tmp_path / "src"
        make_tree(src)
        bundle = tmp_path / "bundle.tar.gz"
        write_archive(src, bundle)

        with tarfile.open(bundle) as tar:
            link = tar.getmember("charts/link")
        assert link.issym()
        assert link.linkname == "nested/deep/file.txt"

    def test_deterministic(self, tmp_path):
        src = tmp_path / "src"
        make_tree(src)
        a = write_archive(src, tmp_path / "a.tar.gz")
        os.utime(src / "manifest.yaml", (1, 1))
        b = write_archive(src, tmp_path / "b.tar.gz")
        assert a.read_bytes() == b.read_bytes()

    def test_entry_names_are_relative(self, tmp_path):
        src = tmp_path / "src"
        make_tree(src)
        bundle = write_archive(src, tmp_path / "bundle.tar.gz")
        with tarfile.open(bundle) as tar:
            names = tar.getnames()
        assert "manifest.yaml" in names
        assert "images/nginx_1.25.tar" in names
        assert not any(n.startswith("/") or n.startswith("src") for n in names)

    def test_missing_source(self, tmp_path):
        with pytest.raises(ArchiveError):
            write_archive(tmp_path / "nope", tmp_path / "out.tar.gz")


# ─────────────────────────────────────────────
# PARTIAL-TOLERANT READ
# ─────────────────────────────────────────────
def build_tar(path, entries):
    with tarfile.open(path, "w:gz") as tar:
        for info, data in entries:
            tar.addfile(info, io.BytesIO(data) if data is not None else None)


def file_entry(name, data):
    info = tarfile.TarInfo(name)
    info.size = len(data)
    return info, data


class TestRead:
    def test_unsupported_entry_skipped(self, tmp_path, capsys):
        fifo = tarfile.TarInfo("pipe")
        fifo.type = tarfile.FIFOTYPE
        bundle = tmp_path / "b.tar.gz"
        build_tar(bundle, [
            file_entry("a.txt", b"a"),
            (fifo, None),
            file_entry("b/c.txt", b"c"),
        ])

        out = tmp_path / "out"
        skipped = read_archive(bundle, out)

        assert skipped == ["pipe"]
        assert (out / "a.txt").read_bytes() == b"a"
        assert (out / "b" / "c.txt").read_bytes() == b"c"
        assert not (out / "pipe").exists()
        assert "Skipping unsupported file type for 'pipe'" in capsys.readouterr().err

    def test_path_traversal_skipped(self, tmp_path):
        bundle = tmp_path / "b.tar.gz"
        build_tar(bundle, [
            file_entry("../evil.txt", b"x"),
            file_entry("ok.txt", b"ok"),
        ])
        out = tmp_path / "out"
        skipped = read_archive(bundle, out)

        assert skipped == ["../evil.txt"]
        assert not (tmp_path / "evil.txt").exists()
        assert (out / "ok.txt").read_bytes() == b"ok"

    def test_write_through_symlinked_directory_skipped(self, tmp_path, capsys):
        outside = tmp_path / "outside"
        outside.mkdir()
        link = tarfile.TarInfo("charts")
        link.type = tarfile.SYMTYPE
        link.linkname = str(outside)
        bundle = tmp_path / "b.tar.gz"
        build_tar(bundle, [
            (link, None),
            file_entry("charts/owned.txt", b"x"),
            file_entry("images/a.tar", b"a"),
        ])

        out = tmp_path / "out"
        skipped = read_archive(bundle, out)

        assert skipped == ["charts/owned.txt"]
        assert not (outside / "owned.txt").exists()
        assert (out / "charts").is_symlink()
        assert (out / "images" / "a.tar").read_bytes() == b"a"
        assert "Skipping entry outside destination: charts/owned.txt" in \
            capsys.readouterr().err

    def test_file_without_directory_entry(self, tmp_path):
        bundle = tmp_path / "b.tar.gz"
        build_tar(bundle, [file_entry("x/y/z.txt", b"z")])
        out = tmp_path / "out"
        read_archive(bundle, out)
        assert (out / "x" / "y" / "z.txt").read_bytes() == b"z"

    def test_corrupt_archive(self, tmp_path):
        bad = tmp_path / "bad.tar.gz"
        bad.write_bytes(b"not an archive")
        with pytest.raises(ArchiveError):
            read_archive(bad, tmp_path / "out")

    def test_missing_archive(self, tmp_path):
        with pytest.raises(ArchiveError, match="not found"):
            read_archive(tmp_path / "nope.tar.gz", tmp_path / "out")


class TestUnpackBundle:
    def test_unpack(self, tmp_path):
        src = tmp_path / "src"
        make_tree(src)
        bundle = write_archive(src, tmp_path / "bundle.tar.gz")
        out = unpack_bundle(bundle, tmp_path / "out")
        assert (out / "manifest.yaml").exists()
        assert (out / "images" / "nginx_1.25.tar").exists()

    def test_missing_bundle(self, tmp_path):
        with pytest.raises(ArchiveError, match="does not exist"):
            unpack_bundle(tmp_path / "nope.tar.gz", tmp_path / "out")


# ─────────────────────────────────────────────
# NAMING
# ─────────────────────────────────────────────
class TestNaming:
    def test_encode(self):
        assert encode_image_ref("bitnami/nginx:1.25") == "bitnami_nginx_1.25"
        assert image_filename("bitnami/nginx:1.25") == "bitnami_nginx_1.25.tar"

    def test_decode(self):
        assert decode_image_name("bitnami_nginx_1.25") == "bitnami/nginx:1.25"
        assert decode_image_name("bitnami_nginx_1.25.tar") == "bitnami/nginx:1.25"

    @pytest.mark.parametrize("ref", [
        "bitnami/nginx:1.25",
        "nginx:latest",
        "ghcr.io/org/app:v2.0.1",
    ])
    def test_round_trip(self, ref):
        assert decode_image_name(encode_image_ref(ref)) == ref

    def test_underscore_in_repository_is_ambiguous(self):
        ref = "my_repo/name:tag"
        encoded = encode_image_ref(ref)
        assert encoded == "my_repo_name_tag"
        assert decode_image_name(encoded) == "my/repo/name:tag"
        assert decode_image_name(encoded) != ref

    def test_untagged_name(self):
        assert decode_image_name("alpine") == "alpine"

    def test_chart_filename(self):
        assert chart_filename("nginx", "15.4.4") == "nginx-15.4.4.tgz"
