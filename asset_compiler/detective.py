"""Find the literal module specifiers passed to `require(...)` in compiled JavaScript."""

from __future__ import annotations

from typing import Any, Iterator, List

import esprima
from esprima.error_handler import Error as ParseError

__all__ = ["ParseError", "detect_dependencies", "raw_error_value"]

REQUIRE = "require"


def _walk(tree: Any) -> Iterator[dict]:
	# Pre-order, children in source order.
	stack = [tree]
	while stack:
		node = stack.pop()
		if isinstance(node, dict):
			if "type" in node:
				yield node
			stack.extend(reversed(list(node.values())))
		elif isinstance(node, list):
			stack.extend(reversed(node))


def _is_require(node: dict) -> bool:
	callee = node.get("callee") or {}
	return (
		node.get("type") == "CallExpression"
		and callee.get("type") == "Identifier"
		and callee.get("name") == REQUIRE
	)


def _literal_specifier(arg: dict) -> str | None:
	if arg.get("type") == "Literal" and isinstance(arg.get("value"), str):
		return arg["value"]
	if arg.get("type") == "TemplateLiteral" and not arg.get("expressions") and len(arg.get("quasis") or []) == 1:
		return (arg["quasis"][0].get("value") or {}).get("cooked")
	return None


def detect_dependencies(source: str) -> List[str]:
	"""Return require() string arguments in the order they appear.

	Duplicates are kept. Raises ParseError when `source` is not valid JavaScript.
	"""
	if REQUIRE not in source:
		return []
	if source.startswith("#!"):
		# Keep offsets: the hashbang line becomes a comment of the same length.
		source = "//" + source[2:]
	tree = esprima.parseScript(source, {"tolerant": True}).toDict()
	deps: List[str] = []
	for node in _walk(tree):
		if not _is_require(node) or not node.get("arguments"):
			continue
		spec = _literal_specifier(node["arguments"][0])
		if spec is not None:
			deps.append(spec)
	return deps


def raw_error_value(error: BaseException) -> dict:
	"""The thrown value's own fields, unreshaped."""
	return {
		key: value
		for key, value in vars(error).items()
		if not key.startswith("_") and isinstance(value, (str, int, float, bool, type(None)))
	}
