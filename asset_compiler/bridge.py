"""Node-hosted compilers (coffee-script, typescript, less) driven as black boxes.

Each call spawns `node -e <script>`, writes one JSON payload to its stdin and
reads one JSON reply from its stdout. The raw shapes the compilers report are
rebuilt here as Python objects; shaping them into user-facing errors is the
dispatcher's job.
"""

from __future__ import annotations

import asyncio
import bisect
import json
import logging
import os
import subprocess
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from .config import Settings, load_settings

logger = logging.getLogger(__name__)


class NodeBridgeError(RuntimeError):
	"""The node runtime could not be started or did not answer with JSON."""


# ---------------------------------------------------------------------------
# Raw collaborator shapes


@dataclass
class SourceLocation:
	first_line: int
	first_column: int
	last_line: Optional[int] = None
	last_column: Optional[int] = None


class CoffeeScriptSyntaxError(Exception):
	def __init__(self, message: str, location: Optional[SourceLocation] = None, code: Optional[str] = None) -> None:
		super().__init__(message)
		self.message = message
		self.location = location
		# Source text as captured by the compiler (after its own preprocessing).
		self.code = code

	def __str__(self) -> str:
		return self.message


class LessRenderError(Exception):
	def __init__(
		self,
		message: str,
		line: Optional[int] = None,
		column: Optional[int] = None,
		extract: Optional[List[Optional[str]]] = None,
	) -> None:
		super().__init__(message)
		self.message = message
		self.line = line
		self.column = column
		self.extract = extract or []

	def __str__(self) -> str:
		return self.message


def _is_line_break(ch: str) -> bool:
	return ch in "\n\r\u2028\u2029"


@dataclass
class SourceFile:
	file_name: str
	text: str
	_line_starts: Optional[List[int]] = field(default=None, init=False, repr=False, compare=False)

	@property
	def line_starts(self) -> List[int]:
		if self._line_starts is None:
			self._line_starts = compute_line_starts(self.text)
		return self._line_starts

	def line_and_character_of_position(self, position: int) -> tuple[int, int]:
		"""Map a UTF-16 offset to a 0-based (line, character) pair."""
		starts = self.line_starts
		line = max(bisect.bisect_right(starts, position) - 1, 0)
		return line, position - starts[line]


def compute_line_starts(text: str) -> List[int]:
	"""Line start offsets in UTF-16 code units, CRLF counted as one break."""
	result: List[int] = []
	pos = 0
	line_start = 0
	i = 0
	length = len(text)
	while i < length:
		ch = text[i]
		i += 1
		pos += 2 if ord(ch) > 0xFFFF else 1
		if ch == "\r":
			if i < length and text[i] == "\n":
				i += 1
				pos += 1
			result.append(line_start)
			line_start = pos
		elif _is_line_break(ch):
			result.append(line_start)
			line_start = pos
	result.append(line_start)
	return result


MessageChain = Union[str, Dict[str, Any]]


@dataclass
class TypeScriptDiagnostic:
	message_text: MessageChain
	file: Optional[SourceFile] = None
	start: Optional[int] = None
	code: Optional[int] = None
	category: Optional[int] = None


@dataclass
class TranspileOutput:
	output_text: str
	diagnostics: List[TypeScriptDiagnostic] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Node scripts

_PRELUDE = """
const reply = (value) => process.stdout.write(JSON.stringify(value));
let data = "";
process.stdin.setEncoding("utf-8");
process.stdin.on("data", (chunk) => data += chunk);
process.stdin.on("end", () => main(JSON.parse(data)));
"""

COFFEESCRIPT_SCRIPT = _PRELUDE + """
const coffee = require("coffee-script");
function main(input) {
	let code;
	try {
		code = coffee.compile(input.code, input.options);
	} catch (error) {
		return reply({error: {message: error.message, location: error.location || null, code: error.code}});
	}
	reply({code});
}
"""

TYPESCRIPT_SCRIPT = _PRELUDE + """
const ts = require("typescript");
function main(input) {
	const opts = input.compilerOptions;
	const result = ts.transpileModule(input.code, {
		fileName: input.fileName || undefined,
		reportDiagnostics: true,
		compilerOptions: {
			noEmitOnError: opts.noEmitOnError,
			noImplicitAny: opts.noImplicitAny,
			target: ts.ScriptTarget[opts.target],
			module: ts.ModuleKind[opts.module],
			jsx: ts.JsxEmit[opts.jsx],
			reactNamespace: opts.reactNamespace,
		},
	});
	const diagnostics = (result.diagnostics || []).map((d) => ({
		file: d.file ? {fileName: d.file.fileName, text: d.file.text} : null,
		start: d.start,
		messageText: d.messageText,
		code: d.code,
		category: d.category,
	}));
	reply({outputText: result.outputText, diagnostics});
}
"""

LESS_SCRIPT = _PRELUDE + """
const less = require("less");
function main(input) {
	less.render(input.code, input.options, (error, output) => {
		if (error != null)
			reply({error: {message: error.message, line: error.line, column: error.column, extract: error.extract || []}});
		else
			reply({css: output.css});
	});
}
"""

COFFEESCRIPT_OPTIONS: Dict[str, Any] = {"bare": True, "shiftLine": True}

TRANSPILE_OPTIONS: Dict[str, Any] = {
	"noEmitOnError": False,
	"noImplicitAny": False,
	"target": "ES5",
	"module": "CommonJS",
	"jsx": "React",
	"reactNamespace": "DOM",
}


def _parse_diagnostic(raw: Dict[str, Any]) -> TypeScriptDiagnostic:
	file_data = raw.get("file")
	source = SourceFile(file_name=file_data["fileName"], text=file_data["text"]) if file_data else None
	return TypeScriptDiagnostic(
		message_text=raw.get("messageText") or "",
		file=source,
		start=raw.get("start"),
		code=raw.get("code"),
		category=raw.get("category"),
	)


class NodeBridge:
	def __init__(self, node_binary: str = "node", node_path: Optional[str] = None) -> None:
		self.node_binary = node_binary
		self.node_path = node_path

	@classmethod
	def from_settings(cls, settings: Optional[Settings] = None) -> "NodeBridge":
		settings = settings or load_settings()
		return cls(node_binary=settings.node_binary, node_path=settings.node_path)

	def _env(self) -> Dict[str, str]:
		env = dict(os.environ)
		if self.node_path:
			env["NODE_PATH"] = self.node_path
		return env

	def _command(self, script: str) -> List[str]:
		return [self.node_binary, "-e", script]

	def _decode(self, stdout: str, stderr: str, returncode: int) -> Dict[str, Any]:
		if returncode != 0:
			logger.error("node exited with status %s: %s", returncode, stderr.strip())
			raise NodeBridgeError(f"node exited with status {returncode}: {stderr.strip()}")
		try:
			return json.loads(stdout)
		except json.JSONDecodeError as exc:
			logger.error("node replied with invalid JSON: %r", stdout[:200])
			raise NodeBridgeError(f"invalid reply from node: {exc}") from exc

	def _run(self, script: str, payload: Dict[str, Any]) -> Dict[str, Any]:
		cmd = self._command(script)
		logger.debug("running %s -e <script> (%d bytes of input)", self.node_binary, len(payload.get("code", "")))
		try:
			proc = subprocess.run(
				cmd,
				input=json.dumps(payload),
				capture_output=True,
				encoding="utf-8",
				env=self._env(),
			)
		except FileNotFoundError as exc:
			logger.error("node runtime not found: %s", self.node_binary)
			raise NodeBridgeError(f"node runtime not found: {self.node_binary}") from exc
		return self._decode(proc.stdout, proc.stderr, proc.returncode)

	async def _run_async(self, script: str, payload: Dict[str, Any]) -> Dict[str, Any]:
		cmd = self._command(script)
		logger.debug("spawning %s -e <script> asynchronously", self.node_binary)
		try:
			proc = await asyncio.create_subprocess_exec(
				*cmd,
				stdin=asyncio.subprocess.PIPE,
				stdout=asyncio.subprocess.PIPE,
				stderr=asyncio.subprocess.PIPE,
				env=self._env(),
			)
		except FileNotFoundError as exc:
			logger.error("node runtime not found: %s", self.node_binary)
			raise NodeBridgeError(f"node runtime not found: {self.node_binary}") from exc
		stdout, stderr = await proc.communicate(json.dumps(payload).encode("utf-8"))
		return self._decode(stdout.decode("utf-8"), stderr.decode("utf-8"), proc.returncode)

	def compile_coffeescript(self, code: str) -> str:
		"""Compile bare + line-shifted; raises CoffeeScriptSyntaxError."""
		reply = self._run(COFFEESCRIPT_SCRIPT, {"code": code, "options": COFFEESCRIPT_OPTIONS})
		error = reply.get("error")
		if error is not None:
			loc = error.get("location")
			location = None
			if loc is not None:
				location = SourceLocation(
					first_line=loc["first_line"],
					first_column=loc["first_column"],
					last_line=loc.get("last_line"),
					last_column=loc.get("last_column"),
				)
			raise CoffeeScriptSyntaxError(error.get("message", ""), location, error.get("code"))
		return reply["code"]

	def transpile_module(self, code: str, file_name: Optional[str] = None) -> TranspileOutput:
		reply = self._run(
			TYPESCRIPT_SCRIPT,
			{"code": code, "fileName": file_name, "compilerOptions": TRANSPILE_OPTIONS},
		)
		diagnostics = [_parse_diagnostic(d) for d in reply.get("diagnostics") or []]
		return TranspileOutput(output_text=reply.get("outputText", ""), diagnostics=diagnostics)

	async def render_less(
		self,
		code: str,
		paths: Sequence[str],
		compress: bool = True,
		ie_compat: bool = False,
	) -> str:
		options = {"paths": list(paths), "compress": compress, "ieCompat": ie_compat}
		reply = await self._run_async(LESS_SCRIPT, {"code": code, "options": options})
		error = reply.get("error")
		if error is not None:
			raise LessRenderError(
				error.get("message", ""),
				line=error.get("line"),
				column=error.get("column"),
				extract=error.get("extract"),
			)
		return reply["css"]
