"""Tests for turning wormhole console output into signals."""

from wormhole_bridge.core.classifier import (
    CodeSignal,
    ProgressSignal,
    StatusSignal,
    Stream,
    classify,
    extract_code,
    extract_progress,
    is_human_readable,
)


def test_extracts_code_from_announcement():
    text = "Wormhole code is: 7-crossword-firefly\nOn the other computer, please run: ..."
    assert extract_code(text) == "7-crossword-firefly"


def test_no_code_without_announcement():
    assert extract_code("Sending 1.2 MB file named 'report.pdf'") is None


def test_percentage_progress():
    assert extract_progress("77%") == 77


def test_ratio_progress():
    assert extract_progress("1024/2048") == 50


def test_percentage_wins_over_ratio():
    assert extract_progress("10% 1024/2048") == 10


def test_ratio_rounds_and_clamps():
    assert extract_progress("1/3") == 33
    assert extract_progress("4096/2048") == 100
    assert extract_progress("150%") == 100


def test_zero_denominator_yields_no_progress():
    assert extract_progress("5/0") is None


def test_single_chunk_yields_every_signal():
    signals = classify("50% ... 1024/2048 ... Receiving file", Stream.STDOUT, "receive-files")
    assert signals == [
        ProgressSignal(50),
        StatusSignal("50% ... 1024/2048 ... Receiving file", Stream.STDOUT),
    ]


def test_code_and_progress_in_one_chunk():
    signals = classify("Wormhole code is: 3-apple-banana\n45%\n", Stream.STDOUT, "send-files")
    assert signals == [CodeSignal("3-apple-banana"), ProgressSignal(45)]


def test_stderr_is_always_status_but_not_error():
    signals = classify("  Key established, waiting for confirmation\n", Stream.STDERR, "send-files")
    assert signals == [
        StatusSignal("Key established, waiting for confirmation", Stream.STDERR)
    ]


def test_stdout_keyword_line_is_status():
    signals = classify("Sending 12 bytes\n", Stream.STDOUT, "send-text")
    assert signals == [StatusSignal("Sending 12 bytes", Stream.STDOUT)]


def test_unmatched_readable_stdout_is_generic_status():
    signals = classify("On the other computer, please run:\n", Stream.STDOUT, "send-files")
    assert signals == [StatusSignal("On the other computer, please run:", Stream.STDOUT)]


def test_binary_noise_yields_nothing():
    assert classify("\x00\x01\x02\x03\x04\x05", Stream.STDERR, "send-files") == []
    assert not is_human_readable("\x00\x01\x02\x03")


def test_blank_chunk_yields_nothing():
    assert classify("  \n", Stream.STDOUT, "send-files") == []


def test_text_receive_stdout_is_payload():
    assert classify("Sending 50% of my love, Receiving bytes", Stream.STDOUT, "receive-text") == []


def test_text_receive_stderr_still_reports_status():
    signals = classify("Receiving text message (5 Bytes)", Stream.STDERR, "receive-text")
    assert signals == [StatusSignal("Receiving text message (5 Bytes)", Stream.STDERR)]


def test_classifier_reports_repeated_codes():
    chunk = "Wormhole code is: 7-crossword-firefly"
    assert classify(chunk, Stream.STDOUT, "send-files") == classify(chunk, Stream.STDOUT, "send-files")
    assert classify(chunk, Stream.STDOUT, "send-files") == [CodeSignal("7-crossword-firefly")]
