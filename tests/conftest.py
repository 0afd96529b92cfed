from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import pytest

from asset_compiler import CompilationDispatcher, TranspileOutput


class FakeBridge:
	"""Stands in for the node-hosted compilers; records every call."""

	def __init__(self) -> None:
		self.calls: List[Dict[str, Any]] = []
		self.coffee_output = "var x;\nx = 1;\n"
		self.coffee_error: Optional[Exception] = None
		self.transpile_output: Optional[TranspileOutput] = None
		self.less_output = "a{color:red}"
		self.less_error: Optional[Exception] = None

	def compile_coffeescript(self, code: str) -> str:
		self.calls.append({"kind": "coffeescript", "code": code})
		if self.coffee_error is not None:
			raise self.coffee_error
		return self.coffee_output

	def transpile_module(self, code: str, file_name: Optional[str] = None) -> TranspileOutput:
		self.calls.append({"kind": "transpile", "code": code, "file_name": file_name})
		if self.transpile_output is not None:
			return self.transpile_output
		return TranspileOutput(output_text=code)

	async def render_less(self, code: str, paths: Sequence[str], compress: bool = True, ie_compat: bool = False) -> str:
		self.calls.append({"kind": "less", "code": code, "paths": list(paths), "compress": compress, "ie_compat": ie_compat})
		if self.less_error is not None:
			raise self.less_error
		return self.less_output


@pytest.fixture
def bridge() -> FakeBridge:
	return FakeBridge()


@pytest.fixture
def dispatcher(bridge: FakeBridge) -> CompilationDispatcher:
	return CompilationDispatcher(bridge)
