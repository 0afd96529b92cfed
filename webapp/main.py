from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse

from asset_compiler import (
	CompilationDispatcher,
	CompilationRequest,
	NodeBridge,
	NodeBridgeError,
	UnsupportedLanguageError,
	__version__,
	load_settings,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Asset Compiler", version=__version__)

app.add_middleware(
	CORSMiddleware,
	allow_origins=["*"],
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)


def get_dispatcher() -> CompilationDispatcher:
	return CompilationDispatcher(NodeBridge.from_settings(load_settings()))


@app.get("/", response_class=HTMLResponse)
def index() -> HTMLResponse:
	return HTMLResponse(
		"<h2>Asset Compiler API</h2><p>POST <code>/api/compile</code> with JSON: "
		"<code>{\"code\": \"...\", \"lang\": \"typescript\", \"file\": \"app.ts\"}</code></p>"
	)


@app.get("/health")
def health() -> Dict[str, str]:
	return {"status": "ok"}


@app.post("/api/compile")
def compile_source(req: CompilationRequest, dispatcher: CompilationDispatcher = Depends(get_dispatcher)) -> Dict[str, Any]:
	try:
		return asyncio.run(dispatcher.compile(req))
	except UnsupportedLanguageError as exc:
		raise HTTPException(status_code=400, detail=str(exc)) from exc
	except NodeBridgeError as exc:
		logger.error("compiler bridge failed for %s: %s", req.file or "<string>", exc)
		raise HTTPException(status_code=502, detail=str(exc)) from exc
