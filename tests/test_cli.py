import json
from pathlib import Path

from citysim.cli import main
from citysim.io.plots import plot_duration_histograms
from citysim.metrics.ledger import TripLedger

CONFIGS = Path(__file__).resolve().parent.parent / "configs"


def test_headless_writes_outputs(data_dir, tmp_path):
    out = tmp_path / "out"
    code = main(
        [
            "--config",
            str(CONFIGS / "quick.yaml"),
            "headless",
            str(data_dir / "maps" / "montlake.yaml"),
            "--rng_seed",
            "3",
            "--out",
            str(out),
        ]
    )
    assert code == 0
    for name in ["trips.csv", "summary.json", "run_metadata.json", "config_resolved.yaml"]:
        assert (out / name).exists()
    summary = json.loads((out / "summary.json").read_text())
    assert summary["completed"] is True
    assert summary["unfinished_trips"] == 0
    assert json.loads((out / "run_metadata.json").read_text())["seed"] == "3"


def test_headless_save_and_resume(data_dir, tmp_path):
    config = tmp_path / "config.yaml"
    config.write_text(f"data:\n  data_dir: {tmp_path}\nlogging:\n  level: WARNING\n")
    common = ["--config", str(config), "headless"]
    montlake = str(data_dir / "maps" / "montlake.yaml")
    assert main(common + [montlake, "--rng_seed", "1", "--save_at", "12:00", "--scenario_name", "noon"]) == 0
    saved = tmp_path / "save" / "montlake" / "noon" / "12h00m00.0s.json"
    assert saved.exists()
    assert main(common + [str(saved), "--save_at", "13:00"]) == 0
    assert (tmp_path / "save" / "montlake" / "noon" / "13h00m00.0s.json").exists()
    assert not (tmp_path / "save" / "montlake" / "headless").exists()


def test_bad_flags_fail_cleanly(data_dir):
    montlake = str(data_dir / "maps" / "montlake.yaml")
    assert main(["headless", montlake, "--rng_seed", "1", "--save_at", "noonish"]) == 2
    assert main(["headless", montlake, "--rng_seed", "-1"]) == 2
    assert main(["prebake", "--rng_seed", "-5", "--map", "montlake"]) == 2
    assert main(["headless", montlake, "--savestate_every", "soon"]) == 2
    assert main(["headless", str(data_dir / "maps" / "atlantis.yaml")]) == 2
    assert main(["prebake"]) == 2
    assert main(["evaluate", "Gridlock all of the everything"]) == 2
    assert main(["evaluate", "no such challenge", "--rng_seed", "1"]) == 2


def test_list_challenges(capsys):
    assert main(["challenges"]) == 0
    out = capsys.readouterr().out
    assert "Speed up all bike trips" in out
    assert "montlake" in out


def test_plot_duration_histograms(tmp_path):
    path = plot_duration_histograms(TripLedger().to_frame(), tmp_path)
    assert path.exists()


def test_prebake_then_evaluate(data_dir, tmp_path):
    config = tmp_path / "config.yaml"
    config.write_text(f"data:\n  data_dir: {data_dir}\nlogging:\n  level: WARNING\n")
    prebaked = tmp_path / "prebaked"
    common = ["--config", str(config)]
    assert main(common + ["prebake", "--rng_seed", "42", "--map", "montlake", "--out", str(prebaked)]) == 0
    assert (prebaked / "montlake" / "weekday_typical_traffic_from_psrc.json").exists()

    evaluate = common + ["evaluate", "Speed up all bike trips", "--rng_seed", "42", "--prebaked", str(prebaked)]
    assert main(evaluate) == 1
    bike_lanes = str(data_dir / "edits" / "montlake_protected_bike_lanes.yaml")
    assert main(evaluate + ["--edits", bike_lanes]) == 0


def test_zero_progress_interval_is_a_config_error(data_dir, tmp_path):
    config = tmp_path / "config.yaml"
    config.write_text("engine:\n  progress_every_seconds: 0\n")
    montlake = str(data_dir / "maps" / "montlake.yaml")
    assert main(["--config", str(config), "headless", montlake, "--rng_seed", "1"]) == 2
