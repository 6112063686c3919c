import pytest

import main


@pytest.fixture
def pipeline_env(tmp_path, monkeypatch):
    output_dir = tmp_path / "output"
    monkeypatch.setenv("OUTPUT_DIR", str(output_dir))
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("PROPERTY_TYPES", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    return output_dir


def test_main_writes_ranked_scores(sample_csv, pipeline_env, monkeypatch):
    monkeypatch.setenv("SALES_CSV", str(sample_csv))

    assert main.main() == 0

    lines = (pipeline_env / "investment_scores.csv").read_text(encoding="utf-8").splitlines()
    assert lines == ["district,investment_score", "1,1.00", "2,-1.00"]
    assert (pipeline_env / "district_metrics.csv").exists()
    assert (pipeline_env / "report.html").exists()


def test_main_aborts_on_malformed_date_without_output(tmp_path, pipeline_env, monkeypatch):
    path = tmp_path / "bad.csv"
    path.write_text(
        "Taxkey,District,Sale_date,Sale_price\n"
        "100,4,2010-01,100000\n"
        "100,4,2015,150000\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("SALES_CSV", str(path))

    assert main.main() == 1

    assert not (pipeline_env / "investment_scores.csv").exists()
    errors = (tmp_path / "data" / "errors.log").read_text()
    assert "Data quality check failed" in errors


def test_main_reports_missing_input(tmp_path, pipeline_env, monkeypatch):
    monkeypatch.setenv("SALES_CSV", str(tmp_path / "missing.csv"))

    assert main.main() == 1
    assert not pipeline_env.exists()


def test_load_settings_parses_property_types(monkeypatch):
    monkeypatch.setenv("PROPERTY_TYPES", "Residential, Condominium ,")

    settings = main.load_settings()

    assert settings['property_types'] == ["Residential", "Condominium"]


def test_main_rejects_undecodable_input(tmp_path, pipeline_env, monkeypatch):
    path = tmp_path / "latin1.csv"
    path.write_bytes(
        b"Taxkey,District,Sale_date,Sale_price,Address\n"
        b"100,4,2010-01,100000,\xff\xfe ST\n"
    )
    monkeypatch.setenv("SALES_CSV", str(path))

    assert main.main() == 1

    assert not (pipeline_env / "investment_scores.csv").exists()
    assert "Data quality check failed" in (tmp_path / "data" / "errors.log").read_text()


def test_main_reports_delivery_failure(sample_csv, tmp_path, monkeypatch):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("", encoding="utf-8")
    monkeypatch.setenv("SALES_CSV", str(sample_csv))
    monkeypatch.setenv("OUTPUT_DIR", str(blocker / "output"))
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("PROPERTY_TYPES", raising=False)

    assert main.main() == 1

    assert "Delivery failed" in (tmp_path / "data" / "errors.log").read_text()


def test_unknown_log_level_falls_back_to_info(sample_csv, pipeline_env, monkeypatch):
    monkeypatch.setenv("SALES_CSV", str(sample_csv))
    monkeypatch.setenv("LOG_LEVEL", "verbose")

    assert main.load_settings()['log_level'] == "INFO"
    assert main.main() == 0
