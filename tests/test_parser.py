"""Tests for line-mode classification."""

import json

import pytest
import structlog

from jsonsift.parser import (
    ERROR_FIELD,
    LINE_FIELD,
    BadLine,
    IngestionResult,
    LineClassifier,
    classify_lines,
)

# ---------------------------------------------------------------------------
# JSONL — every line is a JSON value
# ---------------------------------------------------------------------------


class TestJsonLines:
    def test_objects_parse_in_order(self):
        lines = [json.dumps({"n": i}) for i in range(5)]
        result = classify_lines(lines)
        assert result.records == [{"n": i} for i in range(5)]
        assert result.error_count == 0

    def test_each_record_equals_parse_of_its_line(self):
        lines = ['{"a": {"b": [1, 2]}}', "[1, 2, 3]", '{"c": null}']
        result = classify_lines(lines)
        assert result.records == [json.loads(line) for line in lines]

    def test_returns_ingestion_result(self):
        assert isinstance(classify_lines(['{"x": 1}']), IngestionResult)

    def test_empty_input(self):
        result = classify_lines([])
        assert result.records == []
        assert result.degraded == ()
        assert result.lines_read == 0

    def test_blank_lines_skipped(self):
        result = classify_lines(['{"a": 1}', "", "   ", '{"b": 2}'])
        assert result.records == [{"a": 1}, {"b": 2}]
        assert result.lines_read == 2

    def test_surrounding_whitespace_and_newlines_stripped(self):
        result = classify_lines(['  {"a": 1}  \n', '\t{"b": 2}\r\n'])
        assert result.records == [{"a": 1}, {"b": 2}]

    def test_array_line(self):
        assert classify_lines(['[{"a": 1}, 2]']).records == [[{"a": 1}, 2]]

    def test_empty_object_line(self):
        assert classify_lines(["{}"]).records == [{}]


# ---------------------------------------------------------------------------
# Log lines with a JSON suffix
# ---------------------------------------------------------------------------


class TestPrefixedLines:
    def test_prefix_becomes_line_field(self):
        result = classify_lines(['text{"a":1}'])
        assert result.records == [{"_line": "text", "a": 1}]

    def test_prefix_kept_verbatim_including_trailing_space(self):
        line = '2022-10-18T14:07:53.960Z [INFO ] config: {"port":3000}'
        (record,) = classify_lines([line]).records
        assert record == {"_line": "2022-10-18T14:07:53.960Z [INFO ] config: ", "port": 3000}

    def test_existing_line_field_not_overwritten(self):
        result = classify_lines(['text{"a":1,"_line":"x"}'])
        assert result.records == [{"a": 1, "_line": "x"}]

    def test_existing_falsy_line_field_not_overwritten(self):
        (record,) = classify_lines(['text{"_line": ""}']).records
        assert record == {"_line": ""}

    def test_no_prefix_no_line_field(self):
        (record,) = classify_lines(['{"a": 1}']).records
        assert LINE_FIELD not in record

    def test_bracketed_log_prefix_with_object_suffix(self):
        (record,) = classify_lines(['[INFO] ready {"port": 80}']).records
        assert record == {"_line": "[INFO] ready ", "port": 80}

    def test_line_starting_with_bracket_must_close_with_bracket(self):
        result = classify_lines(["[INFO] server started"])
        assert result.records == [{"_line": "[INFO] server started"}]
        assert result.error_count == 0


# ---------------------------------------------------------------------------
# Plain text lines
# ---------------------------------------------------------------------------


class TestPlainText:
    def test_plain_text_becomes_line_record(self):
        result = classify_lines(["hello world"])
        assert result.records == [{"_line": "hello world"}]

    def test_plain_text_is_not_counted_as_degraded(self):
        result = classify_lines(["hello", "world"])
        assert result.error_count == 0
        assert result.degraded == ()

    def test_lone_closing_brace_without_block_is_plain_text(self):
        result = classify_lines(["}"])
        assert result.records == [{"_line": "}"}]
        assert result.error_count == 0

    def test_scalar_json_line_is_plain_text(self):
        assert classify_lines(["42"]).records == [{"_line": "42"}]


# ---------------------------------------------------------------------------
# Malformed JSON-looking lines
# ---------------------------------------------------------------------------


class TestDegradedLines:
    def test_malformed_line_kept_as_raw_text(self):
        result = classify_lines(['{"a": }'])
        assert result.records == [{"_line": '{"a": }'}]
        assert result.error_count == 1

    def test_degraded_line_does_not_poison_later_lines(self):
        result = classify_lines(['{"a": }', '{"b": 2}', "text", '{"c": 3}'])
        assert result.records == [{"_line": '{"a": }'}, {"b": 2}, {"_line": "text"}, {"c": 3}]
        assert result.error_count == 1

    def test_bad_line_details(self):
        result = classify_lines(['{"ok": 1}', "", '{"a": }'])
        (bad,) = result.degraded
        assert isinstance(bad, BadLine)
        assert bad.line_number == 3
        assert bad.raw_text == '{"a": }'
        assert bad.reason.startswith("invalid JSON:")
        assert "col" in bad.reason

    def test_prefixed_malformed_line_keeps_whole_line(self):
        line = 'ERROR bad payload: {"status": }'
        result = classify_lines([line])
        assert result.records == [{"_line": line}]
        assert result.degraded[0].raw_text == line

    def test_nan_is_not_json(self):
        result = classify_lines(['{"a": NaN}'])
        assert result.records == [{"_line": '{"a": NaN}'}]
        assert result.error_count == 1

    def test_deeply_nested_line_degrades_without_stopping_stream(self):
        deep = "[" * 100_000 + "]" * 100_000
        result = classify_lines(['{"a": 1}', deep, '{"b": 2}'])
        assert result.records == [{"a": 1}, {"_line": deep}, {"b": 2}]
        assert result.error_count == 1
        assert result.degraded[0].line_number == 2
        assert result.degraded[0].reason == "invalid JSON: JSON nested too deeply"

    def test_annotate_errors_adds_error_field(self):
        result = classify_lines(['{"a": }'], annotate_errors=True)
        (record,) = result.records
        assert record[LINE_FIELD] == '{"a": }'
        assert record[ERROR_FIELD].startswith("invalid JSON:")

    def test_error_count_matches_degraded(self):
        result = classify_lines(["[1,", "[1,]", '{"a"}', "fine"])
        assert result.error_count == 2
        assert [b.line_number for b in result.degraded] == [2, 3]


# ---------------------------------------------------------------------------
# Pretty-printed multi-line objects
# ---------------------------------------------------------------------------


class TestMultiLineBlocks:
    def test_three_line_object(self):
        result = classify_lines(["{", '"k": 1', "}"])
        assert result.records == [{"k": 1}]
        assert result.error_count == 0

    def test_indented_object_lines_are_stripped(self):
        text = json.dumps({"a": 1, "b": [1, 2], "c": {"d": None}}, indent=2)
        result = classify_lines(text.splitlines())
        assert result.records == [{"a": 1, "b": [1, 2], "c": {"d": None}}]

    def test_block_between_other_records(self):
        lines = ['{"first": 1}', "{", '"k": "v"', "}", "tail"]
        result = classify_lines(lines)
        assert result.records == [{"first": 1}, {"k": "v"}, {"_line": "tail"}]

    def test_lines_inside_block_are_not_classified(self):
        lines = ["{", '"a": {"x": 1},', '"b": 2', "}"]
        assert classify_lines(lines).records == [{"a": {"x": 1}, "b": 2}]

    def test_malformed_block_becomes_one_raw_record(self):
        lines = ["{", '"k": ', "}", '{"next": 1}']
        result = classify_lines(lines)
        assert result.records == [{"_line": '{\n"k":\n}'}, {"next": 1}]
        assert result.error_count == 1
        assert result.degraded[0].line_number == 1

    def test_consecutive_blocks(self):
        lines = ["{", '"a": 1', "}", "{", '"b": 2', "}"]
        assert classify_lines(lines).records == [{"a": 1}, {"b": 2}]

    def test_bare_open_brace_inside_block_is_appended(self):
        # No depth tracking: the nested "{" line is accumulated and the
        # first "}" closes the block, so this shape degrades.
        lines = ["{", '"items": [', "{", '"a": 1', "}", "]", "}"]
        result = classify_lines(lines)
        assert result.records[0] == {"_line": '{\n"items": [\n{\n"a": 1\n}'}
        assert result.records[1:] == [{"_line": "]"}, {"_line": "}"}]
        assert result.error_count == 1


class TestDanglingBlock:
    def test_dangling_block_dropped_without_error(self):
        result = classify_lines(['{"a": 1}', "text", "{"])
        assert result.records == [{"a": 1}, {"_line": "text"}]
        assert result.error_count == 0
        assert result.dangling_lines == 1

    def test_dangling_block_counts_accumulated_lines(self):
        result = classify_lines(["{", '"a": 1,', '"b": 2'])
        assert result.records == []
        assert result.dangling_lines == 3

    def test_emit_dangling_block_keeps_partial_text(self):
        result = classify_lines(["{", '"a": 1'], emit_dangling_block=True)
        assert result.records == [{"_line": '{\n"a": 1'}]
        assert result.error_count == 1
        assert result.degraded[0].reason == "unterminated multi-line object"

    def test_dangling_block_logged_at_debug(self):
        with structlog.testing.capture_logs() as events:
            classify_lines(["{", '"a": 1'])
        dropped = [e for e in events if e["event"] == "unterminated multi-line object dropped"]
        assert len(dropped) == 1
        assert dropped[0]["log_level"] == "debug"
        assert dropped[0]["line_number"] == 1


# ---------------------------------------------------------------------------
# LineClassifier — incremental use
# ---------------------------------------------------------------------------


class TestLineClassifier:
    def test_in_block_tracks_state(self):
        classifier = LineClassifier()
        classifier.feed(1, "{")
        assert classifier.in_block
        classifier.feed(2, '"a": 1')
        assert classifier.in_block
        classifier.feed(3, "}")
        assert not classifier.in_block
        assert classifier.finish().records == [{"a": 1}]

    def test_empty_line_ignored(self):
        classifier = LineClassifier()
        classifier.feed(1, "")
        assert classifier.finish().lines_read == 0

    def test_degraded_lines_logged(self):
        with structlog.testing.capture_logs() as events:
            classify_lines(['{"a": }', '{"b": 1}'])
        degraded = [e for e in events if e["event"] == "line degraded"]
        assert len(degraded) == 1
        assert degraded[0]["line_number"] == 1

    @pytest.mark.parametrize(
        "line",
        ['{"a": 1}', "[1]", 'prefix {"a": 1}', "plain", "{", "}"],
    )
    def test_feed_never_raises(self, line):
        classifier = LineClassifier()
        classifier.feed(1, line)
        classifier.finish()
