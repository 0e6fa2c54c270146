"""
tests/test_build.py — Bundle building end to end, with fake pulls and a fake chart repo.
"""

import io
import os
import sys
import tarfile
import pytest
import yaml

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from airlift.bundle.archive import read_archive
from airlift.bundle.builder import RewriteOptions, build_bundle
from airlift.core.errors import FetchError, RewriteError, ValidationError
from airlift.core.progress import ProgressTracker
from airlift.oci.client import ImageArtifact


REPO = "https://charts.example.com/stable"

NGINX_VALUES = """\
image:
  registry: docker.io
  repository: bitnami/nginx
  tag: "1.25"
metrics:
  image:
    repository: bitnami/nginx-exporter
    tag: "0.11"
"""


def chart_bytes(name="nginx", values=NGINX_VALUES):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        files = {f"{name}/Chart.yaml": f"name: {name}\nversion: 1.0.0\n"}
        if values is not None:
            files[f"{name}/values.yaml"] = values
        for path, text in files.items():
            data = text.encode()
            info = tarfile.TarInfo(path)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def fake_pull(fail=()):
    def pull(ref, out_path, progress=None):
        if ref in fail:
            raise RuntimeError(f"unauthorized: {ref}")
        out_path.write_bytes(b"image:" + ref.encode())
        return ImageArtifact(ref=ref, path=out_path, digest="sha256:" + "1" * 64,
                             size=out_path.stat().st_size)
    return pull


class FakeResponse:
    def __init__(self, content=b"", status_code=200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            import requests
            raise requests.HTTPError(f"{self.status_code} error")

    def iter_content(self, chunk_size=1):
        yield self.content


class FakeSession:
    def __init__(self, charts):
        entries = {
            name: [{"version": "1.0.0", "urls": [f"{name}-1.0.0.tgz"]}]
            for name in charts
        }
        self.routes = {f"{REPO}/index.yaml": yaml.safe_dump({"entries": entries}).encode()}
        for name, data in charts.items():
            self.routes[f"{REPO}/{name}-1.0.0.tgz"] = data

    def get(self, url, timeout=None, stream=False):
        if url not in self.routes:
            return FakeResponse(status_code=404)
        return FakeResponse(self.routes[url])


def write_manifest(tmp_path, images=(), charts=(), values_file=None):
    chart_entries = []
    for name in charts:
        entry = {"name": name, "repo": REPO, "version": "1.0.0"}
        if values_file and name == charts[0]:
            entry["valuesFile"] = values_file
        chart_entries.append(entry)
    data = {"images": list(images), "charts": chart_entries}
    p = tmp_path / "manifest.yaml"
    p.write_text(yaml.safe_dump(data))
    return p


def unpack(bundle, dest):
    read_archive(bundle, dest)
    return dest


def chart_values(chart_path, name="nginx"):
    with tarfile.open(chart_path) as tar:
        return yaml.safe_load(tar.extractfile(f"{name}/values.yaml"))


@pytest.fixture
def quiet():
    return ProgressTracker(echo=False)


# ─────────────────────────────────────────────
# BUILD
# ─────────────────────────────────────────────
class TestBuild:
    def test_bundle_layout(self, tmp_path, quiet):
        manifest = write_manifest(
            tmp_path,
            images=["bitnami/nginx:1.25", "bitnami/nginx-exporter:0.11"],
            charts=["nginx"],
        )
        out = tmp_path / "out" / "bundle.tar.gz"

        result = build_bundle(manifest, out, parallelism=2, progress=quiet,
                              session=FakeSession({"nginx": chart_bytes()}),
                              pull=fake_pull())

        assert result.output == out
        assert [o.name for o in result.images] == manifest_images(manifest)
        assert [o.name for o in result.charts] == ["nginx-1.0.0"]
        assert result.warnings == []

        tree = unpack(out, tmp_path / "x")
        assert (tree / "images" / "bitnami_nginx_1.25.tar").read_bytes() == \
            b"image:bitnami/nginx:1.25"
        assert (tree / "images" / "bitnami_nginx-exporter_0.11.tar").exists()
        assert (tree / "charts" / "nginx-1.0.0.tgz").exists()
        assert (tree / "manifest.yaml").read_text() == manifest.read_text()

    def test_values_file_copied(self, tmp_path, quiet):
        (tmp_path / "values").mkdir()
        (tmp_path / "values" / "nginx-prod.yaml").write_text("replicaCount: 3\n")
        manifest = write_manifest(tmp_path, images=["bitnami/nginx:1.25",
                                                    "bitnami/nginx-exporter:0.11"],
                                  charts=["nginx"],
                                  values_file="values/nginx-prod.yaml")
        out = tmp_path / "bundle.tar.gz"

        build_bundle(manifest, out, progress=quiet,
                     session=FakeSession({"nginx": chart_bytes()}), pull=fake_pull())

        tree = unpack(out, tmp_path / "x")
        assert (tree / "charts" / "nginx-prod.yaml").read_text() == "replicaCount: 3\n"

    def test_missing_chart_images_warned(self, tmp_path, quiet):
        manifest = write_manifest(tmp_path, images=["bitnami/nginx:1.25"],
                                  charts=["nginx"])

        result = build_bundle(manifest, tmp_path / "b.tar.gz", progress=quiet,
                              session=FakeSession({"nginx": chart_bytes()}),
                              pull=fake_pull())

        assert result.warnings == [
            "Image bitnami/nginx-exporter:0.11 is used by a chart "
            "but not listed in the manifest",
        ]

    def test_images_only(self, tmp_path, quiet):
        manifest = write_manifest(tmp_path, images=["alpine:3.19"])
        out = tmp_path / "b.tar.gz"
        result = build_bundle(manifest, out, progress=quiet, pull=fake_pull())
        assert result.charts == []
        tree = unpack(out, tmp_path / "x")
        assert (tree / "images" / "alpine_3.19.tar").exists()
        assert list((tree / "charts").iterdir()) == []


class TestRewrite:
    def test_chart_and_values_file_rewritten(self, tmp_path, quiet):
        (tmp_path / "custom.yaml").write_text(
            "sidecar:\n  image: quay.io/org/sidecar:2.0\n"
        )
        manifest = write_manifest(tmp_path, images=["bitnami/nginx:1.25",
                                                    "bitnami/nginx-exporter:0.11"],
                                  charts=["nginx"], values_file="custom.yaml")
        out = tmp_path / "b.tar.gz"

        result = build_bundle(manifest, out, progress=quiet,
                              rewrite=RewriteOptions("registry.local:5000"),
                              session=FakeSession({"nginx": chart_bytes()}),
                              pull=fake_pull())

        assert result.rewritten == ["nginx-1.0.0", "custom.yaml"]
        tree = unpack(out, tmp_path / "x")
        values = chart_values(tree / "charts" / "nginx-1.0.0.tgz")
        assert values["image"] == {"registry": "registry.local:5000",
                                   "repository": "nginx", "tag": "1.25"}
        assert values["metrics"]["image"]["repository"] == \
            "registry.local:5000/nginx-exporter"
        custom = yaml.safe_load((tree / "charts" / "custom.yaml").read_text())
        assert custom["sidecar"]["image"] == "registry.local:5000/sidecar:2.0"

    def test_chart_without_values_left_alone(self, tmp_path, quiet):
        manifest = write_manifest(tmp_path, charts=["bare"])
        result = build_bundle(manifest, tmp_path / "b.tar.gz", progress=quiet,
                              rewrite=RewriteOptions("registry.local:5000"),
                              session=FakeSession({"bare": chart_bytes("bare", None)}),
                              pull=fake_pull())
        assert result.rewritten == []

    def test_bad_values_warns(self, tmp_path, quiet):
        manifest = write_manifest(tmp_path, charts=["broken"])
        session = FakeSession({"broken": chart_bytes("broken", "image: [oops\n")})

        result = build_bundle(manifest, tmp_path / "b.tar.gz", progress=quiet,
                              rewrite=RewriteOptions("registry.local:5000"),
                              session=session, pull=fake_pull())

        assert any("Could not rewrite image references in broken-1.0.0" in w
                   for w in result.warnings)
        assert (tmp_path / "b.tar.gz").exists()

    def test_bad_values_strict(self, tmp_path, quiet):
        manifest = write_manifest(tmp_path, charts=["broken"])
        session = FakeSession({"broken": chart_bytes("broken", "image: [oops\n")})

        with pytest.raises(RewriteError):
            build_bundle(manifest, tmp_path / "b.tar.gz", progress=quiet,
                         rewrite=RewriteOptions("registry.local:5000", strict=True),
                         session=session, pull=fake_pull())
        assert not (tmp_path / "b.tar.gz").exists()


# ─────────────────────────────────────────────
# FAILURES
# ─────────────────────────────────────────────
class TestFailures:
    def test_image_failure_writes_no_bundle(self, tmp_path, quiet):
        manifest = write_manifest(tmp_path, images=["a:1", "b:1", "c:1"])
        out = tmp_path / "b.tar.gz"

        with pytest.raises(FetchError) as exc:
            build_bundle(manifest, out, progress=quiet,
                         pull=fake_pull(fail={"a:1", "c:1"}))

        assert not out.exists()
        assert [o.name for o in exc.value.outcomes] == ["a:1", "b:1", "c:1"]
        assert [o.name for o in exc.value.failures] == ["a:1", "c:1"]
        assert "unauthorized: a:1" in str(exc.value)

    def test_chart_failure_writes_no_bundle(self, tmp_path, quiet):
        manifest = write_manifest(tmp_path, images=["a:1"], charts=["nginx", "gone"])
        out = tmp_path / "b.tar.gz"

        with pytest.raises(FetchError) as exc:
            build_bundle(manifest, out, progress=quiet,
                         session=FakeSession({"nginx": chart_bytes()}),
                         pull=fake_pull())

        assert not out.exists()
        assert [o.ok for o in exc.value.outcomes] == [True, False]

    def test_invalid_manifest(self, tmp_path, quiet):
        manifest = write_manifest(tmp_path)
        with pytest.raises(ValidationError):
            build_bundle(manifest, tmp_path / "b.tar.gz", progress=quiet,
                         pull=fake_pull())


def manifest_images(path):
    return yaml.safe_load(path.read_text())["images"]
