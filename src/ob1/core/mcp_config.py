"""Load MCP server definitions for agent CLIs, expanding ${env:VAR|default} placeholders."""

import json
import logging
import os
import re
from pathlib import Path

logger = logging.getLogger(__name__)

ENV_PLACEHOLDER = re.compile(r"\$\{env:([A-Za-z0-9_]+)(\|([^}]*))?\}")


def search_order(base_dir: Path, explicit_path: str | None = None) -> list[Path]:
    """Candidate config files, most specific first, without duplicates."""
    candidates = [
        explicit_path,
        os.environ.get("MCP_CONFIG_PATH"),
        str(Path("config") / "mcp.config.json"),
        "mcp.config.json",
    ]
    order: list[Path] = []
    for value in candidates:
        if not value:
            continue
        path = Path(value)
        if not path.is_absolute():
            path = (base_dir / path).resolve()
        if path not in order:
            order.append(path)
    return order


def resolve_placeholders(value, missing: set[str]):
    """Recursively substitute environment placeholders in strings, lists and dicts."""
    if isinstance(value, str):
        def substitute(match: re.Match) -> str:
            name, default = match.group(1), match.group(3)
            env_value = os.environ.get(name)
            if env_value:
                return env_value
            if default is not None:
                return default
            missing.add(name)
            return ""

        return ENV_PLACEHOLDER.sub(substitute, value)
    if isinstance(value, list):
        return [resolve_placeholders(v, missing) for v in value]
    if isinstance(value, dict):
        return {k: resolve_placeholders(v, missing) for k, v in value.items()}
    return value


def load_mcp_servers(base_dir: str | Path, explicit_path: str | None = None) -> dict[str, dict]:
    """Return the first usable server mapping found, or an empty dict."""
    for candidate in search_order(Path(base_dir), explicit_path):
        if not candidate.exists():
            continue
        try:
            parsed = json.loads(candidate.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("[mcp] Failed to read MCP config at %s: %s", candidate, e)
            continue

        raw_servers = parsed.get("servers") or parsed.get("mcpServers")
        if not raw_servers:
            logger.warning("[mcp] %s does not define any servers.", candidate)
            continue

        missing: set[str] = set()
        servers = resolve_placeholders(raw_servers, missing)
        if missing:
            logger.warning(
                "[mcp] Missing environment values for: %s (define them in .env before running agents).",
                ", ".join(sorted(missing)),
            )
        logger.info("[mcp] Loaded %d MCP server(s) from %s", len(servers), candidate)
        return servers

    logger.info("[mcp] No MCP config found; continuing without custom servers.")
    return {}


def write_mcp_config(servers: dict[str, dict], path: Path) -> Path:
    """Write servers in the `mcpServers` shape the agent CLIs accept."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"mcpServers": servers}, indent=2), encoding="utf-8")
    return path
