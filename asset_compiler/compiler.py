"""Compile one CoffeeScript, TypeScript/JavaScript or Less unit and report the result as JSON."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, TextIO

from pydantic import BaseModel, ConfigDict

from .bridge import (
	CoffeeScriptSyntaxError,
	LessRenderError,
	MessageChain,
	NodeBridge,
	TypeScriptDiagnostic,
)
from .detective import ParseError, detect_dependencies, raw_error_value

logger = logging.getLogger(__name__)

STRING_FILE = "<string>"

Response = Dict[str, Any]


# ---------------------------------------------------------------------------
# Data model


class Language(Enum):
	COFFEESCRIPT = "coffeescript"
	JAVASCRIPT = "javascript"
	TYPESCRIPT = "typescript"
	LESS = "less"


class UnsupportedLanguageError(ValueError):
	def __init__(self, lang: Any) -> None:
		super().__init__(f"unsupported input type: {lang}")
		self.lang = lang


class CompilationRequest(BaseModel):
	model_config = ConfigDict(frozen=True)

	code: str
	lang: str
	file: Optional[str] = None


@dataclass
class CompilationSuccess:
	code: str
	deps: Optional[List[str]] = None

	def to_json(self) -> Response:
		data: Response = {"code": self.code}
		if self.deps is not None:
			data["deps"] = self.deps
		return data


@dataclass
class CompilationError:
	message: str
	text: str
	line: Optional[int] = None
	column: Optional[int] = None
	extract: Optional[str] = None
	annotated: Optional[str] = None

	def to_json(self) -> Dict[str, Any]:
		data: Dict[str, Any] = {"message": self.message}
		if self.line is not None:
			data["line"] = self.line
		if self.column is not None:
			data["column"] = self.column
		data["text"] = self.text
		if self.extract is not None:
			data["extract"] = self.extract
		if self.annotated is not None:
			data["annotated"] = self.annotated
		return data


def error_response(error: CompilationError) -> Response:
	return {"error": error.to_json()}


# ---------------------------------------------------------------------------
# Error formatting
#
# Coordinate conventions differ per compiler and are kept as reported:
# CoffeeScript and TypeScript are 0-based on both axes, Less reports a line
# that is used unchanged and a 0-based column.


def format_coffeescript_error(error: CoffeeScriptSyntaxError, file: Optional[str]) -> CompilationError:
	message = error.message
	name = file or STRING_FILE
	location = error.location
	if location is None:
		return CompilationError(message=message, text=f"{name}:{message}")

	line = location.first_line + 1
	column = location.first_column + 1
	text = f"{name}:{line}:{column}:{message}"
	marker_len = 2
	if location.first_line == location.last_line and location.last_column is not None:
		marker_len += location.last_column - location.first_column
	lines = (error.code or "").split("\n")
	extract = lines[line - 1] if 0 < line <= len(lines) else None
	annotated = "\n".join([
		text,
		"  " + (extract or ""),
		"  " + " " * (column - 1) + "^" * (marker_len - 1),
	])
	return CompilationError(
		message=message,
		line=line,
		column=column,
		text=text,
		extract=extract,
		annotated=annotated,
	)


def format_less_error(error: LessRenderError, file: Optional[str]) -> CompilationError:
	"""Annotation is always two lines; the excerpt line is blank when `extract` is absent."""
	message = error.message
	name = file or STRING_FILE
	if error.line is None:
		return CompilationError(message=message, text=f"{name}:{message}")

	line = error.line
	column = (error.column or 0) + 1
	text = f"{name}:{line}:{column}:{message}"
	# Indexed by the reported line, not line - 1.
	extract = error.extract[line] if 0 <= line < len(error.extract) else None
	annotated = "\n".join([text, "  " + (extract or "")])
	return CompilationError(
		message=message,
		line=line,
		column=column,
		text=text,
		extract=extract,
		annotated=annotated,
	)


def flatten_diagnostic_message_text(chain: Optional[MessageChain], new_line: str, indent: int = 0) -> str:
	if chain is None:
		return ""
	if isinstance(chain, str):
		return chain
	result = ""
	if indent:
		result += new_line + "  " * indent
	result += chain.get("messageText", "")
	indent += 1
	kids = chain.get("next")
	if isinstance(kids, dict):
		kids = [kids]
	for kid in kids or []:
		result += flatten_diagnostic_message_text(kid, new_line, indent)
	return result


def format_typescript_error(diagnostic: TypeScriptDiagnostic) -> CompilationError:
	message = flatten_diagnostic_message_text(diagnostic.message_text, "\n")
	if diagnostic.file is None or diagnostic.start is None:
		return CompilationError(message=message, text=f"{STRING_FILE}:{message}")

	line, column = diagnostic.file.line_and_character_of_position(diagnostic.start)
	line += 1
	column += 1
	text = f"{diagnostic.file.file_name}:{line}:{column}:{message}"
	return CompilationError(message=message, line=line, column=column, text=text)


# ---------------------------------------------------------------------------
# Dispatch


def less_import_directory(file: Optional[str]) -> str:
	return os.path.dirname(file or "") or "."


class CompilationDispatcher:
	def __init__(
		self,
		bridge: Optional[NodeBridge] = None,
		detect: Callable[[str], List[str]] = detect_dependencies,
	) -> None:
		self.bridge = bridge if bridge is not None else NodeBridge.from_settings()
		self.detect = detect
		self._routes: Dict[Language, Callable[[CompilationRequest], Awaitable[Response]]] = {
			Language.COFFEESCRIPT: self._compile_coffeescript,
			Language.JAVASCRIPT: self._compile_javascript,
			Language.TYPESCRIPT: self._compile_javascript,
			Language.LESS: self._compile_less,
		}

	async def compile(self, request: CompilationRequest) -> Response:
		try:
			lang = Language(request.lang)
		except ValueError:
			raise UnsupportedLanguageError(request.lang) from None
		logger.debug("compiling %s as %s", request.file or STRING_FILE, lang.value)
		return await self._routes[lang](request)

	async def _compile_coffeescript(self, request: CompilationRequest) -> Response:
		try:
			code = await asyncio.to_thread(self.bridge.compile_coffeescript, request.code)
		except CoffeeScriptSyntaxError as error:
			return error_response(format_coffeescript_error(error, request.file))
		return await asyncio.to_thread(self.compile_and_resolve_deps, code, request.file)

	async def _compile_javascript(self, request: CompilationRequest) -> Response:
		return await asyncio.to_thread(self.compile_and_resolve_deps, request.code, request.file)

	async def _compile_less(self, request: CompilationRequest) -> Response:
		paths = [less_import_directory(request.file)]
		try:
			css = await self.bridge.render_less(request.code, paths=paths, compress=True, ie_compat=False)
		except LessRenderError as error:
			return error_response(format_less_error(error, request.file))
		return CompilationSuccess(code=css).to_json()

	def compile_and_resolve_deps(self, code: str, file: Optional[str]) -> Response:
		result = self.bridge.transpile_module(code, file_name=file)
		if result.diagnostics:
			logger.debug("transpile reported %d diagnostic(s), reporting the first", len(result.diagnostics))
			return error_response(format_typescript_error(result.diagnostics[0]))

		source = result.output_text
		try:
			deps = self.detect(source)
		except ParseError as error:
			return {"error": raw_error_value(error)}
		return CompilationSuccess(code=source, deps=deps).to_json()


def reply(data: Response, out: Optional[TextIO] = None) -> None:
	out = out if out is not None else sys.stdout
	out.write(json.dumps(data, ensure_ascii=False, separators=(",", ":")))
	out.write("\n")
	out.flush()


async def dispatch(
	request: CompilationRequest,
	dispatcher: Optional[CompilationDispatcher] = None,
	out: Optional[TextIO] = None,
) -> Response:
	"""Compile `request` and write exactly one JSON response line."""
	dispatcher = dispatcher if dispatcher is not None else CompilationDispatcher()
	response = await dispatcher.compile(request)
	reply(response, out)
	return response
