"""
tests/test_manifest.py — Manifest loading and validation.
"""

import os
import sys
import pytest
import yaml

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from airlift.core.errors import ValidationError
from airlift.core.manifest import (
    ChartSpec, Manifest, load_manifest, save_manifest, validate_manifest,
)


def write_manifest(tmp_path, data, name="manifest.yaml"):
    p = tmp_path / name
    p.write_text(yaml.dump(data) if not isinstance(data, str) else data)
    return p


# ─────────────────────────────────────────────
# LOAD
# ─────────────────────────────────────────────
class TestLoad:
    def test_images_only(self, tmp_path):
        p = write_manifest(tmp_path, {"images": ["nginx:1.25"]})
        m = load_manifest(p)
        assert m.images == ["nginx:1.25"]
        assert m.charts == []
        assert m.path == p

    def test_charts(self, tmp_path):
        p = write_manifest(tmp_path, {
            "charts": [{
                "name": "nginx",
                "repo": "https://charts.bitnami.com/bitnami",
                "version": "15.4.4",
            }],
        })
        m = load_manifest(p)
        assert m.charts == [ChartSpec(
            name="nginx",
            repo="https://charts.bitnami.com/bitnami",
            version="15.4.4",
        )]
        assert m.charts[0].key == ("nginx", "15.4.4")
        assert m.charts[0].archive_name == "nginx-15.4.4.tgz"

    def test_float_version_kept_as_string(self, tmp_path):
        p = write_manifest(
            tmp_path,
            "charts:\n  - name: app\n    repo: https://x\n    version: 1.10\n",
        )
        assert load_manifest(p).charts[0].version == "1.1"

    def test_duplicate_images_tolerated(self, tmp_path):
        p = write_manifest(tmp_path, {"images": ["nginx:1.25", "nginx:1.25"]})
        assert len(load_manifest(p).images) == 2

    def test_values_file_resolved_against_manifest_dir(self, tmp_path):
        (tmp_path / "values").mkdir()
        (tmp_path / "values" / "nginx.yaml").write_text("replicaCount: 2\n")
        p = write_manifest(tmp_path, {
            "charts": [{
                "name": "nginx", "repo": "https://x", "version": "1.0.0",
                "valuesFile": "values/nginx.yaml",
            }],
        })
        m = load_manifest(p)
        assert m.charts[0].values_file == str(tmp_path / "values" / "nginx.yaml")

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValidationError, match="not found"):
            load_manifest(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        p = write_manifest(tmp_path, "images: [nginx\n")
        with pytest.raises(ValidationError, match="parse"):
            load_manifest(p)

    def test_not_a_mapping(self, tmp_path):
        p = write_manifest(tmp_path, "- nginx\n")
        with pytest.raises(ValidationError, match="mapping"):
            load_manifest(p)

    def test_images_not_a_list(self, tmp_path):
        p = write_manifest(tmp_path, {"images": "nginx"})
        with pytest.raises(ValidationError) as exc:
            load_manifest(p)
        assert exc.value.field == "images"


# ─────────────────────────────────────────────
# VALIDATION
# ─────────────────────────────────────────────
class TestValidation:
    def test_empty_manifest(self, tmp_path):
        p = write_manifest(tmp_path, {"images": [], "charts": []})
        with pytest.raises(ValidationError, match="at least one image or chart"):
            load_manifest(p)

    def test_empty_file(self, tmp_path):
        p = write_manifest(tmp_path, "")
        with pytest.raises(ValidationError, match="at least one"):
            load_manifest(p)

    def test_blank_image(self, tmp_path):
        p = write_manifest(tmp_path, {"images": ["nginx:1.25", "  "]})
        with pytest.raises(ValidationError) as exc:
            load_manifest(p)
        assert exc.value.field == "images"
        assert exc.value.index == 1

    @pytest.mark.parametrize("missing,field", [
        ("name", "charts.name"),
        ("repo", "charts.repo"),
        ("version", "charts.version"),
    ])
    def test_chart_missing_field(self, tmp_path, missing, field):
        chart = {"name": "nginx", "repo": "https://x", "version": "1.0.0"}
        del chart[missing]
        p = write_manifest(tmp_path, {"charts": [chart]})
        with pytest.raises(ValidationError) as exc:
            load_manifest(p)
        assert exc.value.field == field
        assert exc.value.index == 0

    def test_missing_values_file(self, tmp_path):
        p = write_manifest(tmp_path, {
            "charts": [{
                "name": "nginx", "repo": "https://x", "version": "1.0.0",
                "valuesFile": "missing.yaml",
            }],
        })
        with pytest.raises(ValidationError, match="missing.yaml") as exc:
            load_manifest(p)
        assert exc.value.field == "charts.valuesFile"

    def test_images_checked_before_charts(self):
        m = Manifest(
            images=[""],
            charts=[ChartSpec(name="", repo="", version="")],
        )
        with pytest.raises(ValidationError) as exc:
            validate_manifest(m)
        assert exc.value.field == "images"

    def test_blank_image_reported_before_chart_shape(self, tmp_path):
        p = write_manifest(tmp_path, {"images": ["  "], "charts": ["notamapping"]})
        with pytest.raises(ValidationError) as exc:
            load_manifest(p)
        assert exc.value.field == "images"
        assert exc.value.index == 0

    def test_chart_not_a_mapping(self, tmp_path):
        p = write_manifest(tmp_path, {
            "images": ["nginx:1.25"],
            "charts": [{"name": "ok", "repo": "https://x", "version": "1"}, "nginx"],
        })
        with pytest.raises(ValidationError, match="must be a mapping") as exc:
            load_manifest(p)
        assert exc.value.field == "charts"
        assert exc.value.index == 1

    def test_first_violation_wins(self):
        m = Manifest(charts=[
            ChartSpec(name="ok", repo="https://x", version="1"),
            ChartSpec(name="", repo="https://x", version="1"),
            ChartSpec(name="bad", repo="", version="1"),
        ])
        with pytest.raises(ValidationError) as exc:
            validate_manifest(m)
        assert exc.value.index == 1
        assert exc.value.field == "charts.name"


# ─────────────────────────────────────────────
# SAVE
# ─────────────────────────────────────────────
class TestSave:
    def test_save_and_load(self, tmp_path):
        values = tmp_path / "v.yaml"
        values.write_text("{}\n")
        m = Manifest(
            images=["nginx:1.25"],
            charts=[ChartSpec("nginx", "https://x", "1.0.0", str(values))],
        )
        p = tmp_path / "out.yaml"
        save_manifest(m, p)

        data = yaml.safe_load(p.read_text())
        assert data["charts"][0]["valuesFile"] == str(values)

        m2 = load_manifest(p)
        assert m2.images == m.images
        assert m2.charts == m.charts
