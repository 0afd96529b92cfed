"""Single-shot compiler dispatch for CoffeeScript, TypeScript/JavaScript and Less."""

from __future__ import annotations

from .bridge import (
	CoffeeScriptSyntaxError,
	LessRenderError,
	NodeBridge,
	NodeBridgeError,
	SourceFile,
	SourceLocation,
	TranspileOutput,
	TypeScriptDiagnostic,
)
from .compiler import (
	CompilationDispatcher,
	CompilationError,
	CompilationRequest,
	CompilationSuccess,
	Language,
	UnsupportedLanguageError,
	dispatch,
	format_coffeescript_error,
	format_less_error,
	format_typescript_error,
)
from .config import Settings, load_settings
from .detective import detect_dependencies

__version__ = "0.1.0"

__all__ = [
	"CoffeeScriptSyntaxError",
	"CompilationDispatcher",
	"CompilationError",
	"CompilationRequest",
	"CompilationSuccess",
	"Language",
	"LessRenderError",
	"NodeBridge",
	"NodeBridgeError",
	"Settings",
	"SourceFile",
	"SourceLocation",
	"TranspileOutput",
	"TypeScriptDiagnostic",
	"UnsupportedLanguageError",
	"detect_dependencies",
	"dispatch",
	"format_coffeescript_error",
	"format_less_error",
	"format_typescript_error",
	"load_settings",
]
