import json
from pathlib import Path

import pytest

from factories import hard, mk_assignment, mk_fixture, mk_instance, mk_result, soft, ts
from scripts.validate import main

WINDOWS = [{"day": "Saturday", "start": "10:00", "end": "20:00"}]


@pytest.fixture()
def files(tmp_path: Path) -> dict[str, Path]:
    """
    @brief
    Instance plus three results on disk: clean, overlapping, mis-scored.
    """
    instance = mk_instance(
        [mk_fixture("F1", "A", "B"), mk_fixture("F2", "A", "C")],
        constraints=[
            hard("H1", "no_overlap_team"),
            soft("S1", "broadcast_window", {"weight": 2}, allowed_windows=WINDOWS),
        ],
    )
    clean = mk_result(
        [mk_assignment("F1", ts(8, 10)), mk_assignment("F2", ts(8, 14))],
        [{"constraintId": "S1", "violations": 0, "penalty": 0}],
    )
    overlap = mk_result(
        [mk_assignment("F1", ts(8, 10)), mk_assignment("F2", ts(8, 11), "V2")],
        [{"constraintId": "S1", "violations": 0, "penalty": 0}],
    )
    misscored = mk_result(
        [mk_assignment("F1", ts(3, 10)), mk_assignment("F2", ts(8, 14))],
        [{"constraintId": "S1", "violations": 0, "penalty": 0}],
    )

    paths = {}
    for name, doc in (
        ("instance", instance),
        ("clean", clean),
        ("overlap", overlap),
        ("misscored", misscored),
    ):
        paths[name] = tmp_path / f"{name}.json"
        paths[name].write_text(json.dumps(doc), encoding="utf-8")
    paths["out"] = tmp_path / "out"
    return paths


def test_result_with_overlap_exits_three_and_writes_report(files, capsys):
    """
    @brief
    End-to-end CLI run on a schedule with a team overlap.

    @details
    Verifies the exit code, the text rendering on stdout and the persisted
    validation_report.json.
    """
    # --- Act ---
    code = main(["--output-dir", str(files["out"]), "result", str(files["instance"]), str(files["overlap"])])

    # --- Assert ---
    assert code == 3
    out = capsys.readouterr().out
    assert out.startswith("INVALID (exit 3)")
    assert "[HARD] H1: Team 'A' overlap between fixtures 'F1' and 'F2'" in out

    report = json.loads((files["out"] / "validation_report.json").read_text(encoding="utf-8"))
    assert report["exitCode"] == 3
    assert len(report["details"]["hardViolations"]) == 1


def test_json_format_on_stdout(files, capsys):
    code = main(
        ["--format", "json", "--output-dir", str(files["out"]), "result", str(files["instance"]), str(files["clean"])]
    )
    data = json.loads(capsys.readouterr().out)
    assert code == 0
    assert data["valid"] is True
    assert data["details"]["totalPenalty"] == 0


def test_misscored_result_exits_four(files):
    code = main(["--output-dir", str(files["out"]), "result", str(files["instance"]), str(files["misscored"])])
    assert code == 4


def test_fix_scores_writes_fixed_result(files, capsys):
    # --- Arrange ---
    target = files["out"] / "fixed.json"

    # --- Act ---
    code = main(
        [
            "--format",
            "json",
            "--output-dir",
            str(files["out"]),
            "result",
            str(files["instance"]),
            str(files["misscored"]),
            "--fix-scores",
            "--out",
            str(target),
        ]
    )

    # --- Assert ---
    assert code == 0
    data = json.loads(capsys.readouterr().out)
    assert data["details"]["fixedResultPath"] == target.as_posix()
    fixed = json.loads(target.read_text(encoding="utf-8"))
    assert fixed["scores"]["totalPenalty"] == 2.0
    assert fixed["scores"]["_validatedBy"] == "osss-validator"

    # The rewritten result validates cleanly without fix-scores
    assert main(["--output-dir", str(files["out"]), "result", str(files["instance"]), str(target)]) == 0


def test_instance_command(files, capsys):
    code = main(["--output-dir", str(files["out"]), "instance", str(files["instance"])])
    assert code == 0
    assert capsys.readouterr().out.startswith("VALID (exit 0): Instance is valid")


def test_compare_command_ranks_results(files, capsys):
    # --- Act ---
    code = main(
        [
            "--format",
            "json",
            "--output-dir",
            str(files["out"]),
            "compare",
            str(files["instance"]),
            str(files["overlap"]),
            str(files["clean"]),
            str(files["misscored"]),
        ]
    )

    # --- Assert ---
    assert code == 0
    data = json.loads(capsys.readouterr().out)
    assert data["details"]["best"] == "clean.json"
    assert [r["label"] for r in data["details"]["ranking"]][0] == "clean.json"


def test_registry_and_config_options(files, tmp_path: Path):
    """
    @brief
    --registry and --config are honoured; metrics.json is written on request.
    """
    # --- Arrange ---
    registry_dir = tmp_path / "registry"
    registry_dir.mkdir()
    (registry_dir / "constraints.json").write_text(
        json.dumps([{"ruleId": "no_overlap_team"}, {"ruleId": "broadcast_window"}]), encoding="utf-8"
    )
    config = tmp_path / "config.yaml"
    config.write_text("io_policy:\n  write_metrics: true\n", encoding="utf-8")

    # --- Act ---
    code = main(
        [
            "--config",
            str(config),
            "--registry",
            str(registry_dir),
            "--output-dir",
            str(files["out"]),
            "result",
            str(files["instance"]),
            str(files["clean"]),
        ]
    )

    # --- Assert ---
    assert code == 0
    metrics = json.loads((files["out"] / "metrics.json").read_text(encoding="utf-8"))
    assert metrics["num_assignments"] == 2


@pytest.mark.parametrize("argv_tail", [["result", "missing.json", "other.json"], ["instance", "nope.txt"]])
def test_unreadable_inputs_exit_one(files, argv_tail):
    assert main(["--output-dir", str(files["out"]), *argv_tail]) == 1


def test_missing_registry_dir_exits_one(files, tmp_path: Path):
    code = main(
        ["--registry", str(tmp_path / "nowhere"), "--output-dir", str(files["out"]), "instance", str(files["instance"])]
    )
    assert code == 1


def test_bundle_command_reports_each_example(files, tmp_path: Path, capsys):
    """
    @brief
    Every folder of the examples directory is validated; the worst exit code wins.
    """
    # --- Arrange ---
    examples = tmp_path / "examples"
    for name, result in (("clean", "clean"), ("overlap", "overlap"), ("no-result", None)):
        folder = examples / name
        folder.mkdir(parents=True)
        (folder / "osss-instance.json").write_bytes(files["instance"].read_bytes())
        if result:
            (folder / "osss-results.json").write_bytes(files[result].read_bytes())

    # --- Act ---
    code = main(["--format", "json", "--output-dir", str(files["out"]), "bundle", str(examples)])
    data = json.loads(capsys.readouterr().out)
    strict = main(["--output-dir", str(files["out"]), "bundle", str(examples), "--require-results"])

    # --- Assert ---
    assert code == 3
    assert [(r["example"], r["exitCode"]) for r in data["details"]["bundle"]] == [
        ("clean", 0),
        ("no-result", 0),
        ("overlap", 3),
    ]
    assert strict == 3


def test_bundle_command_missing_directory_exits_one(files, tmp_path: Path):
    assert main(["--output-dir", str(files["out"]), "bundle", str(tmp_path / "nowhere")]) == 1
