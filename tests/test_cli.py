import json

import pytest

from news_ranking.cli import main

NEWS = [
    {"id": "a", "headline": "Election night live", "category": "POLITICS", "date": "2024-05-30"},
    {"id": "b", "headline": "Election recount ordered", "category": "POLITICS", "date": "2024-05-01"},
    {"id": "c", "headline": "Puppy adoption tips", "category": "PETS", "date": "2024-05-29"},
]


@pytest.fixture
def corpus_path(tmp_path):
    path = tmp_path / "news.jsonl"
    path.write_text("\n".join(json.dumps(r) for r in NEWS) + "\n", encoding="utf-8")
    return path


def test_config_command(tmp_path, capsys):
    config_path = tmp_path / "ranking.json"
    config_path.write_text(json.dumps({"popularity_weight": 0.5}))

    assert main(["--config", str(config_path), "config"]) == 0

    printed = json.loads(capsys.readouterr().out)
    assert printed["popularity_weight"] == 0.5
    assert printed["relevance_weight"] == 1.0


def test_missing_config_file_fails(tmp_path, capsys):
    assert main(["--config", str(tmp_path / "missing.json"), "config"]) == 1
    assert "Error" in capsys.readouterr().err


def test_invalid_config_fails(tmp_path, capsys):
    config_path = tmp_path / "ranking.json"
    config_path.write_text(json.dumps({"b_traffic_fraction": 3}))
    assert main(["--config", str(config_path), "config"]) == 1


def test_weights_set_and_show(tmp_path, capsys):
    model_path = tmp_path / "ltr_model.bin"

    assert main(["weights", "--model", str(model_path), "--set", "0.1", "0.2", "0.3", "0.4", "0.5"]) == 0
    capsys.readouterr()
    assert model_path.exists()

    assert main(["weights", "--model", str(model_path)]) == 0
    shown = json.loads(capsys.readouterr().out)
    assert shown == {"weights": [0.1, 0.2, 0.3, 0.4], "bias": 0.5}


def test_search_command(tmp_path, corpus_path, capsys):
    config_path = tmp_path / "ranking.json"
    config_path.write_text(json.dumps({"b_traffic_fraction": 0.0}))

    exit_code = main(
        [
            "--config",
            str(config_path),
            "search",
            "election",
            "--corpus",
            str(corpus_path),
            "--model",
            str(tmp_path / "ltr_model.bin"),
            "--top-k",
            "5",
        ]
    )

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "Variant A (weighted)" in out
    assert "Election night live" in out
    assert "Election recount ordered" in out
    assert "Puppy adoption tips" not in out
