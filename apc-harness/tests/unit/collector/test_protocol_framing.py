from __future__ import annotations

from apc_harness.collector.protocol import (
    Frame,
    FrameAssembler,
    FrameState,
    LineFramer,
    LineKind,
    classify_line,
    split_glued_boundary,
)


def _assemble(lines: list[str]) -> tuple[list[Frame], FrameAssembler]:
    frames: list[Frame] = []
    assembler = FrameAssembler(frames.append)
    for line in lines:
        if assembler.feed_line(line):
            break
    return frames, assembler


def test_classify_line_control_markers_are_trimmed() -> None:
    assert classify_line(" OK \r", in_frame=False).kind is LineKind.SENTINEL
    assert classify_line("OK", in_frame=True).kind is LineKind.SENTINEL
    assert classify_line("---", in_frame=True).kind is LineKind.BOUNDARY
    assert classify_line("ok", in_frame=False).kind is LineKind.IDENTIFIER


def test_classify_line_depends_on_frame_state() -> None:
    assert classify_line(" com.a ", in_frame=False).text == "com.a"
    assert classify_line("", in_frame=False).kind is LineKind.BLANK
    body = classify_line("  indented text", in_frame=True)
    assert body.kind is LineKind.BODY
    assert body.text == "  indented text"
    assert classify_line("", in_frame=True).kind is LineKind.BODY


def test_split_glued_boundary() -> None:
    assert split_glued_boundary("---com.b") == ["---", "com.b"]
    assert split_glued_boundary("---de.example.app_2\r") == ["---", "de.example.app_2"]
    assert split_glued_boundary("---") == ["---"]
    assert split_glued_boundary("-----") == ["-----"]
    assert split_glued_boundary("some text") == ["some text"]


def test_split_glued_boundary_leaves_dash_prefixed_body_text() -> None:
    assert split_glued_boundary("---Contact us") == ["---Contact us"]
    assert split_glued_boundary("--- Section 2") == ["--- Section 2"]
    assert split_glued_boundary("---v1.0 changes") == ["---v1.0 changes"]


def test_line_framer_reassembles_lines_across_chunks() -> None:
    framer = LineFramer()
    payload = "com.a\nDatenschutzerklärung\n---com.b\nWorld\n---\nOK".encode("utf-8")
    lines: list[str] = []
    # One byte at a time splits the two-byte "ä" across chunks.
    for i in range(len(payload)):
        lines.extend(framer.feed(payload[i : i + 1]))
    lines.extend(framer.close())
    assert lines == ["com.a", "Datenschutzerklärung", "---", "com.b", "World", "---", "OK"]


def test_line_framer_keeps_carriage_returns_in_body() -> None:
    framer = LineFramer()
    lines = framer.feed(b"com.a\r\nline one\r\n---\r\nOK")
    lines.extend(framer.close())
    assert lines == ["com.a\r", "line one\r", "---\r", "OK"]

    frames, assembler = _assemble(lines)
    assert frames == [Frame(identifier="com.a", body=["line one\r"])]
    assert assembler.sentinel_seen


def test_assembler_two_frames_then_sentinel() -> None:
    frames, assembler = _assemble(["com.a", "Hello", "---", "com.b", "World", "---", "", "OK"])
    assert [(f.identifier, f.body) for f in frames] == [("com.a", ["Hello"]), ("com.b", ["World"])]
    assert assembler.sentinel_seen
    assert assembler.state is FrameState.DONE
    assert assembler.violations == []


def test_assembler_preserves_blank_lines_inside_body() -> None:
    frames, _ = _assemble(["com.a", "Para 1", "", "", "Para 2", "---", "OK"])
    assert frames[0].body == ["Para 1", "", "", "Para 2"]


def test_assembler_frame_with_empty_body() -> None:
    frames, _ = _assemble(["com.a", "---", "OK"])
    assert frames == [Frame(identifier="com.a", body=[])]


def test_assembler_records_violations_instead_of_misattributing() -> None:
    frames, assembler = _assemble(["---", "com.a", "half a policy", "OK"])
    assert frames == []
    assert assembler.sentinel_seen
    assert assembler.violations == [
        "boundary marker without identifier",
        "sentinel inside unterminated frame 'com.a'",
    ]


def test_assembler_finish_without_sentinel() -> None:
    frames, assembler = _assemble(["com.a", "Hello", "---", "com.b", "partial"])
    assembler.finish()
    assert [f.identifier for f in frames] == ["com.a"]
    assert not assembler.sentinel_seen
    assert assembler.violations == [
        "stream ended inside frame 'com.b'",
        "stream ended before sentinel",
    ]


def test_assembler_ignores_lines_after_sentinel() -> None:
    frames, assembler = _assemble(["OK"])
    assert assembler.feed_line("com.late") is True
    assembler.finish()
    assert frames == []
    assert assembler.violations == []
