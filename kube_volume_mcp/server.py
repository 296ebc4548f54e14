"""
FastMCP Kube Volume Server

An MCP server that resizes and safely deletes persistent volume claims on
clusters whose storage backend cannot expand volumes in place.
"""

import argparse
import os
import sys
import tempfile
from pathlib import Path
from typing import Annotated, Any

from dotenv import load_dotenv
from fastmcp import FastMCP
from pydantic import Field, ValidationError

from .core.config_loader import KubeVolumeConfig, load_config
from .core.exceptions import ConfigurationError
from .core.kube_client import ClusterAPI, KubeClusterClient
from .core.logging_config import get_server_logger, setup_logging
from .middleware import ErrorHandlingMiddleware, LoggingMiddleware, TimingMiddleware
from .models.enums import VolumeAction
from .models.params import KubeVolumeParams
from .services import VolumeService


def get_log_dir() -> Path | None:
    """Writable log directory: LOG_DIR, the user data dir, then the temp dir."""
    candidates = [
        Path(p) if (p := os.getenv("LOG_DIR")) else None,
        Path.home() / ".local" / "share" / "kube-volume-mcp" / "logs",
        Path(tempfile.gettempdir()) / "kube-volume-mcp-logs",
    ]
    for candidate in candidates:
        if candidate is None:
            continue
        try:
            candidate.mkdir(parents=True, exist_ok=True)
        except OSError:
            continue
        if os.access(candidate, os.W_OK):
            return candidate
    return None


class KubeVolumeMCPServer:
    """Kube Volume MCP server."""

    def __init__(self, config: KubeVolumeConfig, cluster: ClusterAPI | None = None):
        self.config = config
        self.logger = get_server_logger()

        self.cluster: ClusterAPI = cluster or KubeClusterClient(config.kube)
        self.volume_service = VolumeService(config, self.cluster)

        # FastMCP app is created later to prevent auto-start
        self.app: FastMCP | None = None

        self.logger.info(
            "Kube Volume MCP Server initialized",
            server_config=config.server.model_dump(),
            kube_context=config.kube.context,
            protected_namespaces=config.protected_namespaces,
            allow_destructive=config.allow_destructive,
        )

    def _initialize_app(self) -> None:
        """Initialize FastMCP app, middleware, and register tools."""
        self.app = FastMCP("Kube Volume Manager")
        self._configure_middleware()

        self.app.tool(
            self.kube_volume,
            annotations={
                "title": "Kubernetes Volume Management",
                "readOnlyHint": False,  # list/info read-only, resize/delete modify
                "destructiveHint": True,  # delete removes data, resize deletes the source claim
                "idempotentHint": False,  # delete is idempotent, resize is not
                "openWorldHint": True,  # talks to the cluster API
            },
        )

    def _configure_middleware(self) -> None:
        """Configure FastMCP middleware stack (first added = first executed)."""
        if self.app is None:
            return
        self.app.add_middleware(
            ErrorHandlingMiddleware(
                include_traceback=self.config.server.log_level.upper() == "DEBUG",
                track_error_stats=True,
            )
        )
        self.app.add_middleware(
            TimingMiddleware(
                slow_request_threshold_ms=float(os.getenv("SLOW_REQUEST_THRESHOLD_MS", "60000"))
            )
        )
        self.app.add_middleware(
            LoggingMiddleware(
                include_payloads=os.getenv("LOG_INCLUDE_PAYLOADS", "true").lower() in ("1", "true", "yes"),
                max_payload_length=int(os.getenv("LOG_MAX_PAYLOAD_LENGTH", "1000")),
            )
        )

    async def kube_volume(
        self,
        action: Annotated[str | VolumeAction, Field(description="Action to perform")] = VolumeAction.LIST,
        namespace: Annotated[str, Field(default="", description="Namespace of the claim")] = "",
        name: Annotated[str, Field(default="", description="Persistent volume claim name")] = "",
        size: Annotated[str, Field(default="", description="Target size for resize, e.g. '20Gi'")] = "",
        confirm: Annotated[
            bool, Field(default=False, description="Confirm deletion of the claim and its data")
        ] = False,
        dry_run: Annotated[
            bool, Field(default=False, description="Validate and plan without making changes")
        ] = False,
    ) -> dict[str, Any]:
        """Consolidated persistent volume claim management tool.

        Actions:
        • list: List volume claims
          - Optional: namespace (all namespaces when empty)

        • info: Show a claim and the workloads mounting it
          - Required: namespace, name

        • resize: Move the claim's data onto a new claim of the requested size
          - Required: namespace, name, size
          - Optional: dry_run
          - Consumers are stopped; scaled deployments are not scaled back up

        • delete: Scale down users of the claim, wait for them, delete the claim
          - Required: namespace, name, confirm=true
          - Optional: dry_run
        """
        try:
            params = KubeVolumeParams(
                action=action,
                namespace=namespace,
                name=name,
                size=size,
                confirm=confirm,
                dry_run=dry_run,
            )
        except ValidationError as e:
            return {
                "success": False,
                "error": f"Parameter validation failed: {e}",
                "action": str(action) if action else "unknown",
            }

        return await self.volume_service.handle_action(
            params.action, **params.model_dump(exclude={"action"})
        )

    def run(self) -> None:
        """Run the FastMCP server."""
        self._initialize_app()
        self.logger.info(
            "Starting Kube Volume MCP Server",
            host=self.config.server.host,
            port=self.config.server.port,
        )
        if self.app is None:
            raise RuntimeError("FastMCP app not initialized")
        self.app.run(transport="http", host=self.config.server.host, port=self.config.server.port)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    load_dotenv()

    parser = argparse.ArgumentParser(description="FastMCP Kubernetes volume manager")
    parser.add_argument("--host", default=os.getenv("FASTMCP_HOST", "127.0.0.1"), help="Server host")
    parser.add_argument(
        "--port", type=int, default=int(os.getenv("FASTMCP_PORT", "8000")), help="Server port"
    )
    parser.add_argument(
        "--config", default=os.getenv("KUBE_VOLUME_CONFIG"), help="Configuration file path"
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO").upper(),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    parser.add_argument(
        "--validate-config", action="store_true", help="Validate configuration and exit"
    )
    return parser.parse_args(argv)


def _load_and_configure(args, logger) -> KubeVolumeConfig | None:
    """Load configuration and apply CLI overrides; None in validation-only mode."""
    config = load_config(args.config)

    config.server.host = args.host
    config.server.port = args.port
    config.server.log_level = args.log_level

    if args.validate_config:
        logger.info("✅ Configuration is valid", config_file=config.config_file)
        return None
    return config


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    try:
        max_file_size_mb = int(os.getenv("LOG_FILE_SIZE_MB", "10"))
    except ValueError:
        max_file_size_mb = 10
    setup_logging(log_dir=get_log_dir(), log_level=args.log_level, max_file_size_mb=max_file_size_mb)
    logger = get_server_logger()

    try:
        config = _load_and_configure(args, logger)
    except ConfigurationError as e:
        logger.error("Configuration error", error=str(e))
        sys.exit(2)
    if config is None:
        return

    server = KubeVolumeMCPServer(config)
    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("Server shutdown requested")
    except Exception as e:
        logger.error("Server error", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
