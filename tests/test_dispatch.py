from __future__ import annotations

import asyncio
import io
import json
import threading

import pytest

from asset_compiler import (
	CoffeeScriptSyntaxError,
	CompilationRequest,
	LessRenderError,
	SourceFile,
	SourceLocation,
	TranspileOutput,
	TypeScriptDiagnostic,
	UnsupportedLanguageError,
	dispatch,
)
from asset_compiler.compiler import less_import_directory


def run(dispatcher, **fields):
	return asyncio.run(dispatcher.compile(CompilationRequest(**fields)))


def test_javascript_passes_through_transpile_and_detects_deps(dispatcher, bridge):
	code = 'var a = require("a");\nvar b = require("./b");\n'
	response = run(dispatcher, code=code, lang="javascript", file="main.js")
	assert response == {"code": code, "deps": ["a", "./b"]}
	assert bridge.calls == [{"kind": "transpile", "code": code, "file_name": "main.js"}]


def test_typescript_uses_transpiled_output(dispatcher, bridge):
	bridge.transpile_output = TranspileOutput(output_text='"use strict";\nvar x = require("x");\n')
	response = run(dispatcher, code='import * as x from "x"', lang="typescript")
	assert response["code"] == '"use strict";\nvar x = require("x");\n'
	assert response["deps"] == ["x"]


def test_deps_keep_duplicates_in_source_order(dispatcher):
	code = 'require("b"); require("a"); require("b");'
	assert run(dispatcher, code=code, lang="javascript")["deps"] == ["b", "a", "b"]


def test_coffeescript_output_flows_through_js_pipeline(dispatcher, bridge):
	bridge.coffee_output = 'var m;\nm = require("mod");\n'
	response = run(dispatcher, code='m = require "mod"', lang="coffeescript", file="a.coffee")
	assert response == {"code": 'var m;\nm = require("mod");\n', "deps": ["mod"]}
	assert [c["kind"] for c in bridge.calls] == ["coffeescript", "transpile"]
	assert bridge.calls[1]["code"] == bridge.coffee_output


def test_coffeescript_syntax_error_stops_before_transpile(dispatcher, bridge):
	loc = SourceLocation(first_line=2, first_column=4, last_line=2, last_column=4)
	bridge.coffee_error = CoffeeScriptSyntaxError("unexpected ,", loc, "a\nb\nc = d,\n")
	response = run(dispatcher, code="a\nb\nc = d,\n", lang="coffeescript")
	error = response["error"]
	assert error["line"] == 3
	assert error["column"] == 5
	assert error["text"].startswith("<string>:3:5:")
	assert [c["kind"] for c in bridge.calls] == ["coffeescript"]


def test_first_diagnostic_only(dispatcher, bridge):
	source = SourceFile(file_name="t.ts", text="let a: number = 'x';\nlet b: string = 1;\n")
	bridge.transpile_output = TranspileOutput(
		output_text="var a = 'x';\n",
		diagnostics=[
			TypeScriptDiagnostic(message_text="first", file=source, start=4),
			TypeScriptDiagnostic(message_text="second", file=source, start=25),
		],
	)
	response = run(dispatcher, code=source.text, lang="typescript", file="t.ts")
	assert response == {"error": {"message": "first", "line": 1, "column": 5, "text": "t.ts:1:5:first"}}


def test_detection_failure_passes_raw_error_through(dispatcher, bridge):
	bridge.transpile_output = TranspileOutput(output_text="var = require('x');")
	response = run(dispatcher, code="whatever", lang="javascript")
	assert "code" not in response
	assert isinstance(response["error"], dict)
	assert "text" not in response["error"]


def test_less_success_has_no_deps(dispatcher, bridge):
	response = run(dispatcher, code="a { color: red; }", lang="less", file="styles/site/main.less")
	assert response == {"code": "a{color:red}"}
	assert bridge.calls == [{
		"kind": "less",
		"code": "a { color: red; }",
		"paths": ["styles/site"],
		"compress": True,
		"ie_compat": False,
	}]


def test_less_error_is_formatted(dispatcher, bridge):
	bridge.less_error = LessRenderError("Unrecognised input", line=1, column=2, extract=["a {", "b c d", "}"])
	response = run(dispatcher, code="a {\nb c d\n}", lang="less", file="x.less")
	assert response["error"]["text"] == "x.less:1:3:Unrecognised input"
	assert response["error"]["annotated"] == "x.less:1:3:Unrecognised input\n  b c d"


@pytest.mark.parametrize("lang", ["json", "python", "", "Less"])
def test_unsupported_language_raises(dispatcher, bridge, lang):
	with pytest.raises(UnsupportedLanguageError, match="unsupported input type"):
		run(dispatcher, code="{}", lang=lang)
	assert bridge.calls == []


def test_dispatch_writes_one_json_line(dispatcher):
	out = io.StringIO()
	request = CompilationRequest(code="1+1", lang="javascript", file=None)
	response = asyncio.run(dispatch(request, dispatcher, out))
	lines = out.getvalue().split("\n")
	assert lines[1:] == [""]
	assert json.loads(lines[0]) == response == {"code": "1+1", "deps": []}


def test_dispatch_unsupported_writes_nothing(dispatcher):
	out = io.StringIO()
	with pytest.raises(UnsupportedLanguageError):
		asyncio.run(dispatch(CompilationRequest(code="{}", lang="json"), dispatcher, out))
	assert out.getvalue() == ""


def test_request_is_immutable():
	request = CompilationRequest(code="x", lang="javascript")
	with pytest.raises(Exception):
		request.code = "y"


@pytest.mark.parametrize("file, expected", [
	("styles/main.less", "styles"),
	("main.less", "."),
	(None, "."),
	("/abs/dir/x.less", "/abs/dir"),
])
def test_less_import_directory(file, expected):
	assert less_import_directory(file) == expected


def test_long_concatenation_chain_still_answers(dispatcher):
	chain = " + ".join(['"x"'] * 3000)
	response = run(dispatcher, code=f'var a = require("a");\nvar s = {chain};', lang="javascript")
	assert response["deps"] == ["a"]


def test_blocking_compiler_calls_leave_the_event_loop(dispatcher, bridge):
	seen = []
	transpile = bridge.transpile_module

	def recording_transpile(code, file_name=None):
		seen.append(threading.get_ident())
		return transpile(code, file_name)

	bridge.transpile_module = recording_transpile

	async def compile_on_loop():
		loop_thread = threading.get_ident()
		response = await dispatcher.compile(CompilationRequest(code="1", lang="typescript"))
		return loop_thread, response

	loop_thread, response = asyncio.run(compile_on_loop())
	assert response == {"code": "1", "deps": []}
	assert seen and seen[0] != loop_thread
