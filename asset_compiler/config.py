from __future__ import annotations

import logging
import os
import sys
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict


# Environment variable -> Settings field
ENV_VARS: Dict[str, str] = {
	"ASSET_COMPILER_NODE": "node_binary",
	"ASSET_COMPILER_NODE_PATH": "node_path",
	"ASSET_COMPILER_LOG_LEVEL": "log_level",
}

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(BaseModel):
	model_config = ConfigDict(frozen=True)

	node_binary: str = "node"
	# Directory holding coffee-script, typescript and less; exported as NODE_PATH.
	node_path: Optional[str] = None
	log_level: str = "WARNING"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
	env = os.environ if environ is None else environ
	values = {name: env[var] for var, name in ENV_VARS.items() if env.get(var)}
	return Settings(**values)


def configure_logging(level: str) -> None:
	"""Log to stderr; stdout carries the JSON response only."""
	logging.basicConfig(stream=sys.stderr, level=level.upper(), format=LOG_FORMAT)
