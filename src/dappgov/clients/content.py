"""Request/response bridge to the external content-retrieval service.

The bridge speaks JSON-RPC (`vibefi_ipfsList`, `vibefi_ipfsHead`,
`vibefi_ipfsRead`) and returns pydantic models. Content identifiers are
passed through untouched.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from dappgov.clients.rpc import RPC


class ContentFile(BaseModel):
    path: str
    bytes: int = 0


class ContentListing(BaseModel):
    cid: str
    path: str = ""
    files: list[ContentFile] = Field(default_factory=list)


class ContentHead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cid: str
    path: str = ""
    size: int = 0
    content_type: str | None = Field(default=None, alias="contentType")


class ContentSnippet(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: str = "snippet"
    cid: str
    path: str
    text: str = ""
    line_start: int = Field(alias="lineStart")
    line_end: int = Field(alias="lineEnd")
    truncated_head: bool = Field(default=False, alias="truncatedHead")
    truncated_tail: bool = Field(default=False, alias="truncatedTail")
    has_bidi_controls: bool = Field(default=False, alias="hasBidiControls")


class JsonRpcContentBridge:
    """IContentBridge over a JSON-RPC endpoint."""

    def __init__(self, rpc: RPC) -> None:
        self._rpc = rpc

    async def list(self, cid: str, path: str = "") -> ContentListing:
        result = await self._rpc.request("vibefi_ipfsList", [cid, path])
        return ContentListing.model_validate(result)

    async def head(self, cid: str, path: str = "") -> ContentHead:
        result = await self._rpc.request("vibefi_ipfsHead", [cid, path])
        return ContentHead.model_validate(result)

    async def read_snippet(
        self,
        cid: str,
        path: str,
        start_line: int = 1,
        max_lines: int = 200,
        end_line: int | None = None,
    ) -> ContentSnippet:
        opts: dict[str, object] = {"as": "snippet", "startLine": start_line, "maxLines": max_lines}
        if end_line is not None:
            opts["endLine"] = end_line
        result = await self._rpc.request("vibefi_ipfsRead", [cid, path, opts])
        return ContentSnippet.model_validate(result)


# ---------------------------------------------------------------------------
# Review helpers
# ---------------------------------------------------------------------------

CODE_EXTENSIONS = frozenset(
    {
        "ts", "tsx", "js", "jsx", "mjs", "cjs", "json", "sol", "rs",
        "toml", "css", "scss", "md", "txt", "yaml", "yml", "html", "sh",
    }
)


def extension_for(path: str) -> str:
    p = path.strip()
    dot = p.rfind(".")
    if dot < 0 or dot == len(p) - 1:
        return ""
    return p[dot + 1 :].lower()


def is_likely_code_file(path: str) -> bool:
    return extension_for(path) in CODE_EXTENSIONS


def format_bytes(n: int | float) -> str:
    if n is None or n != n or n < 0:  # NaN check
        return "-"
    if n < 1024:
        return f"{int(n)} B"
    kb = n / 1024
    if kb < 1024:
        return f"{kb:.1f} KiB"
    return f"{kb / 1024:.2f} MiB"


def with_line_numbers(text: str, start_line: int) -> str:
    lines = text.split("\n") if text else []
    return "\n".join(f"{start_line + i:>5} | {line}" for i, line in enumerate(lines))
