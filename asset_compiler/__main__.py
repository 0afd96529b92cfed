"""
Command-line entry point.

  asset-compiler --file src/widget.coffee [--lang coffeescript]
  echo '{"code": "1+1", "lang": "javascript", "file": null}' | asset-compiler

Exactly one JSON object is written to stdout. Logging goes to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from .bridge import NodeBridge
from .compiler import CompilationDispatcher, CompilationRequest, Language, dispatch
from .config import Settings, configure_logging, load_settings

DEFAULT_LANG = Language.COFFEESCRIPT.value


def make_dispatcher(settings: Settings) -> CompilationDispatcher:
	return CompilationDispatcher(NodeBridge.from_settings(settings))


def read_request(file: Optional[str], lang: Optional[str]) -> CompilationRequest:
	if file is not None:
		return CompilationRequest(
			code=Path(file).read_text(encoding="utf-8"),
			lang=lang or DEFAULT_LANG,
			file=file,
		)
	if hasattr(sys.stdin, "reconfigure"):
		sys.stdin.reconfigure(encoding="utf-8")
	return CompilationRequest.model_validate_json(sys.stdin.read())


def main(argv: List[str] | None = None) -> int:
	p = argparse.ArgumentParser(prog="asset-compiler", description="Compile one CoffeeScript, TypeScript/JavaScript or Less unit to JSON.")
	p.add_argument("--file", default=None, help="Source file to compile. Without it a JSON request is read from stdin.")
	p.add_argument("--lang", default=None, help=f"Source language with --file (default: {DEFAULT_LANG})")
	p.add_argument("--log-level", default=None, help="Logging level for stderr (default: $ASSET_COMPILER_LOG_LEVEL or WARNING)")
	args = p.parse_args(argv)

	settings = load_settings()
	configure_logging(args.log_level or settings.log_level)

	request = read_request(args.file, args.lang)
	asyncio.run(dispatch(request, make_dispatcher(settings)))
	return 0


if __name__ == "__main__":
	raise SystemExit(main())
