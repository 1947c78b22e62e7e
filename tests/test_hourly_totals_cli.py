from __future__ import annotations

import csv
from pathlib import Path
from typing import Dict, List, Tuple

import pytest

from flowcount.aggregation.aggregation_config import AggregationConfig
from flowcount.aggregation.hourly_totals_cli import main as hourly_totals_main
from flowcount.aggregation.hourly_totals_service import HourlyTotalsService
from flowcount.records.errors import MalformedRowError, MalformedTimestamp, MissingColumnsError

FIELDNAMES = [
    "Flow.ID",
    "Destination.IP",
    "Timestamp",
    "Total.Fwd.Packets",
    "Total.Backward.Packets",
    "Total.Length.of.Fwd.Packets",
    "Total.Length.of.Bwd.Packets",
    "ProtocolName",
    "Label",
]

ROWS: List[Dict[str, str]] = [
    {"Timestamp": "26/04/201711:11:17", "Destination.IP": "172.19.1.46", "ProtocolName": "HTTP_PROXY",
     "Total.Fwd.Packets": "22", "Total.Backward.Packets": "55",
     "Total.Length.of.Fwd.Packets": "132", "Total.Length.of.Bwd.Packets": "110414"},
    {"Timestamp": "26/04/201712:00:01", "Destination.IP": "10.200.7.7", "ProtocolName": "DNS",
     "Total.Fwd.Packets": "1", "Total.Backward.Packets": "1",
     "Total.Length.of.Fwd.Packets": "3e+05", "Total.Length.of.Bwd.Packets": "1"},
    {"Timestamp": "26/04/201711:59:59", "Destination.IP": "172.19.1.46", "ProtocolName": "HTTP_PROXY",
     "Total.Fwd.Packets": "1", "Total.Backward.Packets": "2",
     "Total.Length.of.Fwd.Packets": "3", "Total.Length.of.Bwd.Packets": "4"},
    {"Timestamp": "26/04/201711:05:00", "Destination.IP": "172.19.1.46", "ProtocolName": "SSL",
     "Total.Fwd.Packets": "4", "Total.Backward.Packets": "0",
     "Total.Length.of.Fwd.Packets": "400", "Total.Length.of.Bwd.Packets": "0"},
    {"Timestamp": "26/04/201712:30:00", "Destination.IP": "10.200.7.7", "ProtocolName": "DNS",
     "Total.Fwd.Packets": "2", "Total.Backward.Packets": "2",
     "Total.Length.of.Fwd.Packets": "10", "Total.Length.of.Bwd.Packets": "10"},
]

EXPECTED = {
    "2017-04-26-11": {
        ("2017-04-26-11", "172.19.1.46", "HTTP_PROXY"): (80, 110553),
        ("2017-04-26-11", "172.19.1.46", "SSL"): (4, 400),
    },
    "2017-04-26-12": {
        ("2017-04-26-12", "10.200.7.7", "DNS"): (6, 300021),
    },
}


def _write_flows_csv(path: Path, rows: List[Dict[str, str]] = ROWS) -> None:
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=FIELDNAMES)
        writer.writeheader()
        for idx, row in enumerate(rows):
            writer.writerow({"Flow.ID": f"flow-{idx}", "Label": "BENIGN", **row})


def _load_hourly(directory: Path) -> Dict[str, Dict[Tuple[str, str, str], Tuple[int, int]]]:
    loaded = {}
    for path in sorted(directory.glob("*.csv")):
        with path.open(newline="", encoding="utf-8") as handle:
            reader = csv.DictReader(handle)
            assert reader.fieldnames == ["Timestamp", "Destination.IP", "ProtocolName", "Packets", "Bytes"]
            loaded[path.stem] = {
                (row["Timestamp"], row["Destination.IP"], row["ProtocolName"]): (
                    int(row["Packets"]),
                    int(row["Bytes"]),
                )
                for row in reader
            }
    return loaded


@pytest.mark.parametrize("extra_args", [[], ["--lowmem"], ["--lowmem", "--chunk-size", "2"]])
def test_cli_writes_hourly_files(tmp_path, extra_args):
    input_csv = tmp_path / "flows.csv"
    output_dir = tmp_path / "out" / "hourly"
    _write_flows_csv(input_csv)

    hourly_totals_main(
        ["-i", str(input_csv), "-o", str(output_dir), "--log-level", "ERROR"] + extra_args
    )

    assert _load_hourly(output_dir) == EXPECTED


def test_cli_reads_settings_from_yaml(tmp_path):
    input_csv = tmp_path / "flows.csv"
    output_dir = tmp_path / "from-yaml"
    config_yaml = tmp_path / "flowcount.yaml"
    _write_flows_csv(input_csv)
    config_yaml.write_text(
        f"output_dir: {output_dir.as_posix()}\nlow_memory: true\nchunk_size: 1\n",
        encoding="utf-8",
    )

    hourly_totals_main(["--input", str(input_csv), "--config", str(config_yaml), "--log-level", "ERROR"])

    assert _load_hourly(output_dir) == EXPECTED


def test_cli_requires_input(capsys):
    with pytest.raises(SystemExit) as excinfo:
        hourly_totals_main([])
    assert excinfo.value.code == 2


def test_cli_reports_missing_input_file(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        hourly_totals_main(
            ["-i", str(tmp_path / "nope.csv"), "-o", str(tmp_path), "--log-level", "ERROR"]
        )
    assert "nope.csv" in str(excinfo.value.code)


def test_cli_reports_malformed_counter(tmp_path):
    input_csv = tmp_path / "flows.csv"
    bad = dict(ROWS[0], **{"Total.Fwd.Packets": "lots"})
    _write_flows_csv(input_csv, [ROWS[1], bad])
    with pytest.raises(SystemExit) as excinfo:
        hourly_totals_main(["-i", str(input_csv), "-o", str(tmp_path / "out"), "--log-level", "ERROR"])
    assert "row 2" in str(excinfo.value.code)
    assert "lots" in str(excinfo.value.code)


def test_cli_rejects_invalid_config(tmp_path):
    config_yaml = tmp_path / "bad.yaml"
    config_yaml.write_text("chunk_size: 0\n", encoding="utf-8")
    with pytest.raises(SystemExit) as excinfo:
        hourly_totals_main(["-i", "flows.csv", "--config", str(config_yaml), "--log-level", "ERROR"])
    assert "chunk_size" in str(excinfo.value.code)


def test_service_returns_run_summary(tmp_path):
    input_csv = tmp_path / "flows.csv"
    _write_flows_csv(input_csv)
    seen_rows: List[int] = []
    service = HourlyTotalsService(
        AggregationConfig(output_dir=str(tmp_path / "out"), low_memory=True, chunk_size=2)
    )

    summary = service.run(input_csv, on_rows=seen_rows.append)

    assert summary.strategy == "streaming"
    assert summary.rows_read == len(ROWS)
    assert summary.buckets_written == ["2017-04-26-11", "2017-04-26-12"]
    assert summary.partitions_committed == ["2017-04-26-11", "2017-04-26-12"]
    assert summary.flushes == 4
    assert summary.appends == 2
    assert sum(seen_rows) == len(ROWS)


def test_service_propagates_decode_errors(tmp_path):
    input_csv = tmp_path / "flows.csv"
    _write_flows_csv(input_csv, [dict(ROWS[0], Timestamp="2017-04-26 11:11:17")])
    service = HourlyTotalsService(AggregationConfig(output_dir=str(tmp_path / "out")))
    with pytest.raises(MalformedTimestamp):
        service.run(input_csv)


def test_service_rejects_input_without_required_columns(tmp_path):
    input_csv = tmp_path / "flows.csv"
    input_csv.write_text("Timestamp,Destination.IP\n26/04/201711:11:17,1.1.1.1\n", encoding="utf-8")
    service = HourlyTotalsService(AggregationConfig(output_dir=str(tmp_path / "out")))
    with pytest.raises(MissingColumnsError):
        service.run(input_csv)


def test_service_header_only_input_writes_nothing(tmp_path):
    input_csv = tmp_path / "flows.csv"
    _write_flows_csv(input_csv, [])
    output_dir = tmp_path / "out"
    summary = HourlyTotalsService(AggregationConfig(output_dir=str(output_dir))).run(input_csv)
    assert summary.rows_read == 0
    assert list(output_dir.iterdir()) == []


RAW_HEADER = (
    "Timestamp,Destination.IP,Total.Fwd.Packets,Total.Backward.Packets,"
    "Total.Length.of.Fwd.Packets,Total.Length.of.Bwd.Packets,ProtocolName"
)
RAW_GOOD_ROW = "26/04/201711:11:17,172.19.1.46,22,55,132,110414,HTTP_PROXY"


@pytest.mark.parametrize("low_memory", [False, True])
@pytest.mark.parametrize(
    "bad_row",
    [
        "26/04/201711:20:00,172.19.1.46,1,1,1,1",
        "26/04/201711:20:00,172.19.1.46,HTTP_PROXY",
        RAW_GOOD_ROW + ",EXTRA",
    ],
    ids=["missing-protocol", "missing-counters", "extra-field"],
)
def test_service_rejects_rows_with_wrong_field_count(tmp_path, low_memory, bad_row):
    input_csv = tmp_path / "flows.csv"
    input_csv.write_text(f"{RAW_HEADER}\n{RAW_GOOD_ROW}\n{bad_row}\n", encoding="utf-8")
    output_dir = tmp_path / "out"
    service = HourlyTotalsService(
        AggregationConfig(output_dir=str(output_dir), low_memory=low_memory)
    )

    with pytest.raises(MalformedRowError) as excinfo:
        service.run(input_csv)

    assert excinfo.value.row_number == 2
    for written in output_dir.glob("*.csv"):
        assert ",," not in written.read_text(encoding="utf-8")
        assert "154" not in written.read_text(encoding="utf-8")


def test_cli_reports_short_row(tmp_path):
    input_csv = tmp_path / "flows.csv"
    input_csv.write_text(
        f"{RAW_HEADER}\n{RAW_GOOD_ROW}\n26/04/201711:20:00,172.19.1.46,1,1,1,1\n", encoding="utf-8"
    )
    with pytest.raises(SystemExit) as excinfo:
        hourly_totals_main(["-i", str(input_csv), "-o", str(tmp_path / "out"), "--log-level", "ERROR"])
    assert "row 2" in str(excinfo.value.code)
    assert "expected 7 fields" in str(excinfo.value.code)


def test_service_accepts_padded_header_names(tmp_path):
    input_csv = tmp_path / "flows.csv"
    padded_header = ", ".join(RAW_HEADER.split(","))
    input_csv.write_text(f"{padded_header}\n{RAW_GOOD_ROW}\n", encoding="utf-8")
    output_dir = tmp_path / "out"

    summary = HourlyTotalsService(AggregationConfig(output_dir=str(output_dir))).run(input_csv)

    assert summary.rows_read == 1
    assert _load_hourly(output_dir) == {
        "2017-04-26-11": {("2017-04-26-11", "172.19.1.46", "HTTP_PROXY"): (77, 110546)}
    }
