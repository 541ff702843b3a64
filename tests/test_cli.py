import asyncio

from salvo.cli import build_config, build_parser, main, run
from salvo.models import OutputMode, Stage
from stubs import fixed_latency, stub_endpoint


def test_defaults_build_single_stage():
    config = build_config(build_parser().parse_args(["http://localhost:8000/predict"]))
    assert config.schedule == (Stage(100, 8),)
    assert config.output_mode is OutputMode.NORMAL
    assert config.apikey is None


def test_schedule_and_modes():
    args = build_parser().parse_args(
        ["http://x", "--schedule", "5:1,5:5", "--silent", "--timeout", "0.5"]
    )
    config = build_config(args)
    assert config.schedule == (Stage(5, 1), Stage(5, 5))
    assert config.output_mode is OutputMode.SILENT
    assert config.timeout_s == 0.5


def test_timeout_from_environment(monkeypatch):
    monkeypatch.setenv("SALVO_TIMEOUT_S", "3")
    config = build_config(build_parser().parse_args(["http://x"]))
    assert config.timeout_s == 3.0


def test_missing_endpoint_exits_with_error():
    assert main(["--silent"]) == 1


def test_bad_schedule_exits_with_error():
    assert main(["http://x", "--schedule", "10", "--silent"]) == 1


def test_missing_image_exits_before_any_request(tmp_path):
    assert main(["http://127.0.0.1:9/", "--image", str(tmp_path / "none.jpg"), "--silent"]) == 1


def test_non_image_payload_exits_before_any_request(tmp_path):
    notes = tmp_path / "notes.txt"
    notes.write_text("definitely not an image")
    assert main(["http://127.0.0.1:9/", "--image", str(notes), "--silent"]) == 1


def test_unwritable_latency_log_exits(tmp_path, jpeg_path):
    argv = [
        "http://127.0.0.1:9/",
        "--image", str(jpeg_path),
        "--latency-log", str(tmp_path / "missing" / "lat.txt"),
        "--silent",
    ]
    assert main(argv) == 1


def test_run_writes_latency_log_and_report(tmp_path, capsys, jpeg_path):
    image = jpeg_path
    log = tmp_path / "latencies.txt"

    async def scenario():
        async with stub_endpoint(fixed_latency(0)) as url:
            args = build_parser().parse_args(
                [url, "--image", str(image), "--schedule", "4:2,2:1",
                 "--latency-log", str(log), "--noise"]
            )
            return await run(build_config(args))

    assert asyncio.run(scenario()) == 0
    assert len(log.read_text().splitlines()) == 6
    out = capsys.readouterr().out
    assert "Stage 1/2" in out and "Stage 2/2" in out
    assert out.count("100%") >= 2


def test_apikey_from_environment_stays_out_of_help(monkeypatch, capsys):
    monkeypatch.setenv("SALVO_APIKEY", "s3cr3t-key")
    parser = build_parser()
    parser.print_help()
    assert "s3cr3t-key" not in capsys.readouterr().out
    assert build_config(parser.parse_args(["http://x"])).apikey == "s3cr3t-key"
    assert build_config(parser.parse_args(["http://x", "--apikey", "cli"])).apikey == "cli"
