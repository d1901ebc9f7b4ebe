"""
Tests for validation utilities.

Tests structured error reporting, export pre-flight checks and the
validators for exported datasets.
"""

from pathlib import Path

import pytest
import yaml

from yolo_annotator.annotation import AnnotationStore, BoundingBox
from yolo_annotator.common.config_utils import ExportConfig, ExportFormat
from yolo_annotator.common.validation import (
    ErrorSeverity,
    PipelineError,
    ValidationResult,
    validate_dataset_yaml,
    validate_export_config,
    validate_yolo_label,
)


class TestPipelineError:
    """Test PipelineError formatting."""

    def test_format_without_color(self):
        error = PipelineError("Bad thing", ErrorSeverity.WARNING, "exporter", "image a.png")

        assert error.format(use_color=False) == (
            "[WARNING] (exporter): Bad thing\n  Details: image a.png"
        )

    def test_format_with_color_contains_message(self):
        error = PipelineError("Bad thing")

        formatted = error.format(use_color=True)

        assert "[ERROR]" in formatted
        assert "Bad thing" in formatted
        assert "\x1b[" in formatted


class TestValidationResult:
    """Test ValidationResult accumulation."""

    def test_warnings_keep_result_valid(self):
        result = ValidationResult()
        result.add_warning("careful")
        result.add_info("fyi")

        assert result.is_valid
        assert len(result.warnings) == 2

    def test_error_invalidates(self):
        result = ValidationResult()
        result.add_error("broken")

        assert not result.is_valid

    def test_merge(self):
        first = ValidationResult()
        second = ValidationResult()
        second.add_error("broken")
        second.add_warning("careful")

        first.merge(second)

        assert not first.is_valid
        assert len(first.errors) == 1
        assert len(first.warnings) == 1

    def test_format_all_errors_first(self):
        result = ValidationResult()
        result.add_warning("second")
        result.add_error("first")

        lines = result.format_all(use_color=False).splitlines()

        assert lines[0].startswith("[ERROR]")
        assert lines[1].startswith("[WARNING]")


class TestValidateExportConfig:
    """Test validate_export_config function."""

    def test_valid_store(self, annotated_store: AnnotationStore):
        config = ExportConfig(class_list=["cup", "bottle"])

        result = validate_export_config(annotated_store, config)

        assert result.is_valid
        assert result.warnings == []

    def test_empty_class_list(self, annotated_store: AnnotationStore):
        result = validate_export_config(annotated_store, ExportConfig())

        assert not result.is_valid
        assert any("No classes defined" in e.message for e in result.errors)

    def test_no_annotated_images(self):
        store = AnnotationStore()
        store.add_box("a.png", BoundingBox(0, 0, 10, 10, "cup"))
        config = ExportConfig(format=ExportFormat.SEGMENTATION, class_list=["cup"])

        result = validate_export_config(store, config)

        assert not result.is_valid
        assert result.errors[0].message == "No annotated images to export"

    def test_unmapped_labels_warn(self, annotated_store: AnnotationStore):
        config = ExportConfig(class_list=["cup"])

        result = validate_export_config(annotated_store, config)

        assert result.is_valid
        assert len(result.warnings) == 1
        assert result.warnings[0].details == "bottle"

    def test_unsized_images_reported_as_info(self):
        store = AnnotationStore()
        store.add_box("a.png", BoundingBox(0, 0, 10, 10, "cup"))

        result = validate_export_config(store, ExportConfig(class_list=["cup"]))

        assert result.is_valid
        assert [w.severity for w in result.warnings] == [ErrorSeverity.INFO]


class TestValidateDatasetYaml:
    """Test validate_dataset_yaml function."""

    def _write(self, root: Path, data) -> Path:
        path = root / "data.yaml"
        path.write_text(yaml.dump(data))
        return path

    def test_valid_manifest(self, temp_dir: Path):
        (temp_dir / "images" / "train").mkdir(parents=True)
        (temp_dir / "images" / "val").mkdir(parents=True)
        path = self._write(temp_dir, {
            "path": ".", "train": "images/train", "val": "images/val",
            "nc": 2, "names": ["cup", "bottle"],
        })

        assert validate_dataset_yaml(str(path)).is_valid

    def test_missing_file(self, temp_dir: Path):
        result = validate_dataset_yaml(str(temp_dir / "data.yaml"))

        assert not result.is_valid

    def test_missing_fields(self, temp_dir: Path):
        path = self._write(temp_dir, {"train": "images/train"})

        result = validate_dataset_yaml(str(path))

        assert not result.is_valid
        assert len(result.errors) == 3

    def test_nc_mismatch_and_missing_dirs(self, temp_dir: Path):
        path = self._write(temp_dir, {
            "train": "images/train", "val": "images/val", "nc": 3, "names": ["cup"],
        })

        messages = [e.message for e in validate_dataset_yaml(str(path)).errors]

        assert any("does not match" in m for m in messages)
        assert any(m.startswith("train path not found") for m in messages)


class TestValidateYoloLabel:
    """Test validate_yolo_label function."""

    def test_valid_label(self, temp_dir: Path):
        path = temp_dir / "a.txt"
        path.write_text("0 0.500000 0.500000 1.000000 0.750000\n1 0.1 0.2 0.3 0.4\n")

        assert validate_yolo_label(str(path)) == (True, [])

    def test_empty_label_is_valid(self, temp_dir: Path):
        path = temp_dir / "a.txt"
        path.write_text("")

        assert validate_yolo_label(str(path)) == (True, [])

    @pytest.mark.parametrize(
        "line,fragment",
        [
            ("0 0.5 0.5 0.5", "Expected 5 values"),
            ("x 0.5 0.5 0.5 0.5", "Invalid number format"),
            ("-1 0.5 0.5 0.5 0.5", "Negative class ID"),
            ("0 1.5 0.5 0.5 0.5", "x_center out of range"),
        ],
    )
    def test_invalid_lines(self, temp_dir: Path, line, fragment):
        path = temp_dir / "a.txt"
        path.write_text(line + "\n")

        is_valid, errors = validate_yolo_label(str(path))

        assert not is_valid
        assert fragment in errors[0]

    def test_missing_file(self, temp_dir: Path):
        assert validate_yolo_label(str(temp_dir / "none.txt")) == (False, ["Label file not found"])
