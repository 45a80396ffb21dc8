#!/usr/bin/env python3
"""Tests for result JSON -> CSV conversion, batch evaluation and result analysis."""

import csv
import json

import pandas as pd
import pytest

from goodput import batch_models, results_to_csv
from goodput.config import default_init_cwnd_pkts, default_mss_bytes, get_env, results_dir
from goodput.post_processing import analyze_results


def result_doc(achieved_bps, achieved_status="OK", peak_bps=1_200_000):
    return {
        "source": "capture.pcap",
        "transfer": {
            "total_bytes": 150_000,
            "mss_bytes": 1500,
            "init_cwnd_pkts": 10,
            "min_rtt_us": 50_000,
            "total_time_us": 240_000,
        },
        "peak": {
            "bytes_per_sec": peak_bps,
            "rtts_in_slow_start": 3,
            "projected_cwnd_pkts": 110,
            "last_full_cwnd_pkts": 40,
            "status": "OK",
        },
        "achieved": {
            "bytes_per_sec": achieved_bps,
            "rtts_in_slow_start": 2 if achieved_status == "OK" else 0,
            "projected_cwnd_pkts": 40 if achieved_status == "OK" else 0,
            "last_full_cwnd_pkts": 40 if achieved_status == "OK" else 0,
            "status": achieved_status,
        },
    }


@pytest.fixture
def results_dir_with_docs(tmp_path):
    docs = {
        "fast": result_doc(1_200_000),
        "slow": result_doc(300_000),
        "odd": result_doc(0, "TRANSFER_FASTER_THAN_MODEL"),
    }
    for name, doc in docs.items():
        with open(tmp_path / f"{name}.json", "w") as f:
            json.dump(doc, f)
    return tmp_path


class TestConfig:
    def test_empty_env_is_unset(self, monkeypatch):
        monkeypatch.setenv("MSS_BYTES", "")
        assert get_env("MSS_BYTES", "x") == "x"
        assert default_mss_bytes() == 1460

    def test_int_overrides(self, monkeypatch):
        monkeypatch.setenv("MSS_BYTES", "9000")
        monkeypatch.setenv("INIT_CWND_PKTS", "4")
        assert default_mss_bytes() == 9000
        assert default_init_cwnd_pkts() == 4

    def test_bad_int_falls_back(self, monkeypatch):
        monkeypatch.setenv("INIT_CWND_PKTS", "many")
        assert default_init_cwnd_pkts() == 10

    def test_results_dir(self, monkeypatch):
        monkeypatch.delenv("RESULTS_DIR", raising=False)
        assert results_dir() == "./results"
        monkeypatch.setenv("RESULTS_DIR", "/tmp/out")
        assert results_dir() == "/tmp/out"


class TestResultsToCsv:
    def test_efficiency(self):
        assert results_to_csv.efficiency(result_doc(600_000)) == pytest.approx(50.0)
        assert results_to_csv.efficiency(result_doc(0, "MINRTT_IS_ZERO")) is None
        assert results_to_csv.efficiency(result_doc(600_000, peak_bps=0)) is None

    def test_single_file(self, results_dir_with_docs, tmp_path):
        out = tmp_path / "fast.csv"
        results_to_csv.json_to_summary_csv(results_dir_with_docs / "fast.json", out)

        with open(out, newline="") as f:
            rows = dict(csv.reader(f))
        assert rows["Source"] == "capture.pcap"
        assert rows["Achieved Goodput (bytes/s)"] == "1200000"
        assert rows["Achieved Status"] == "OK"
        assert rows["Efficiency (%)"] == "100.00"

    def test_batch(self, results_dir_with_docs):
        converted = results_to_csv.batch_convert(str(results_dir_with_docs))
        assert len(converted) == 3
        assert (results_dir_with_docs / "odd_summary.csv").exists()
        with open(results_dir_with_docs / "odd_summary.csv", newline="") as f:
            assert dict(csv.reader(f))["Efficiency (%)"] == "N/A"

    def test_batch_missing_dir(self, tmp_path):
        assert results_to_csv.batch_convert(str(tmp_path / "nope")) == []

    def test_main_usage(self):
        with pytest.raises(SystemExit):
            results_to_csv.main([])


class TestBatchModels:
    def transfers(self):
        return pd.DataFrame(
            {
                "label": ["reference", "no-rtt"],
                "total_bytes": [150_000, 150_000],
                "init_cwnd_pkts": [10, 10],
                "mss_bytes": [1500, 1500],
                "min_rtt_us": [50_000, 0],
                "total_time_us": [240_000, 240_000],
            }
        )

    def test_evaluate_transfers(self):
        results = batch_models.evaluate_transfers(self.transfers())

        assert list(results["label"]) == ["reference", "no-rtt"]
        first = results.iloc[0]
        assert first["peak_bps"] == 1_200_000
        assert first["peak_rtts"] == 3
        assert first["achieved_bps"] == 1_200_000
        assert first["achieved_rtts"] == 2
        assert first["achieved_status"] == "OK"
        assert first["final_cwnd_pkts"] == 40
        assert first["efficiency"] == pytest.approx(100.0)

        second = results.iloc[1]
        assert second["peak_status"] == "MINRTT_IS_ZERO"
        assert second["achieved_status"] == "MINRTT_IS_ZERO"
        assert pd.isna(second["efficiency"])

    def test_blank_and_fractional_cells_are_invalid(self, tmp_path):
        src = tmp_path / "transfers.csv"
        src.write_text(
            "label,total_bytes,init_cwnd_pkts,mss_bytes,min_rtt_us,total_time_us\n"
            "reference,150000,10,1500,50000,240000\n"
            "blank-rtt,150000,10,1500,,240000\n"
            "half-byte,1500.5,10,1500,50000,240000\n"
        )

        results = batch_models.evaluate_transfers(pd.read_csv(src))

        assert results.loc[0, "achieved_bps"] == 1_200_000
        assert results.loc[0, "achieved_status"] == "OK"
        for row in (1, 2):
            assert results.loc[row, "peak_status"] == "INVALID_PARAMETERS"
            assert results.loc[row, "achieved_status"] == "INVALID_PARAMETERS"
            assert results.loc[row, "peak_bps"] == 0
            assert pd.isna(results.loc[row, "efficiency"])

    def test_whole_float_cells_are_accepted(self):
        transfers = self.transfers().astype({"total_bytes": float, "min_rtt_us": float})
        results = batch_models.evaluate_transfers(transfers)
        assert results.loc[0, "achieved_bps"] == 1_200_000

    def test_missing_columns(self):
        with pytest.raises(ValueError, match="min_rtt_us"):
            batch_models.evaluate_transfers(self.transfers().drop(columns=["min_rtt_us"]))

    def test_csv_round_trip(self, tmp_path):
        src = tmp_path / "transfers.csv"
        out = tmp_path / "evaluated.csv"
        self.transfers().to_csv(src, index=False)

        batch_models.main([str(src), str(out)])

        written = pd.read_csv(out)
        assert len(written) == 2
        assert written.loc[0, "achieved_bps"] == 1_200_000

    def test_main_missing_file(self, tmp_path):
        with pytest.raises(SystemExit):
            batch_models.main([str(tmp_path / "nope.csv"), str(tmp_path / "out.csv")])


class TestAnalyzeResults:
    def test_mismatches(self, results_dir_with_docs):
        mismatched = analyze_results.find_model_mismatches(results_dir_with_docs, ["fast", "slow", "odd"])
        assert mismatched == [("odd", "TRANSFER_FASTER_THAN_MODEL")]

    def test_ranking(self, results_dir_with_docs):
        ranked = analyze_results.rank_by_efficiency(results_dir_with_docs, ["slow", "odd", "fast"])
        assert [name for name, _ in ranked] == ["fast", "slow"]
        assert ranked[1][1] == pytest.approx(25.0)

    def test_main_exports_comparison(self, results_dir_with_docs, capsys):
        analyze_results.main(results_dir_with_docs)

        out = capsys.readouterr().out
        assert "ANALYSIS COMPLETED" in out
        comparison = pd.read_csv(results_dir_with_docs / "model_comparison.csv")
        assert sorted(comparison["Transfer"]) == ["fast", "odd", "slow"]

    def test_main_without_results(self, tmp_path, capsys):
        analyze_results.main(tmp_path / "missing")
        assert "not found" in capsys.readouterr().out

    def test_load_missing(self, tmp_path):
        assert analyze_results.load_results(tmp_path, "nothing") is None
