import json
from pathlib import Path

from lockfilter.observability import StructuredLogger


def test_records_are_filtered_and_written_as_json_lines(tmp_path: Path) -> None:
    logger = StructuredLogger()
    logger.log(operation="prune_exclude", strategy="lock", package="winapi@0.3.9", message="x")
    logger.log(
        operation="vendor_divergence",
        strategy="vendor",
        package=None,
        message="y",
        level="warning",
        extra={"packages": ["winapi@0.3.9"]},
    )

    path = logger.to_json_lines(tmp_path / "logs" / "lockfilter.jsonl")

    lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [line["operation"] for line in lines] == ["prune_exclude", "vendor_divergence"]
    assert lines[1]["extra"] == {"packages": ["winapi@0.3.9"]}
    assert [r["operation"] for r in logger.records_for_strategy("vendor")] == ["vendor_divergence"]
    assert logger.records_at("info")[0]["package"] == "winapi@0.3.9"
