"""
server.py - Mining platform server entry point.

Single-process server combining:
 - SQLite persistent ledger via StorageManager
 - Ledger services (accounts, claims, gateway, staking)
 - Background block scheduler
 - REST API (FastAPI on uvicorn, port 8080)

Usage:
    python -m hashledger.server [--api-port 8080] [--db-path data/ledger.db]
    hashledger-server [--api-port 8080] [--db-path data/ledger.db]
"""

import argparse
import asyncio
import logging
import os
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from starlette.requests import Request

from hashledger import __version__
from hashledger.auth import DEFAULT_ADMIN_KEY, AuthService
from hashledger.config import LedgerConfig
from hashledger.errors import CooldownActive, LedgerError
from hashledger.ledger import Ledger
from hashledger.routers import register_all_routers

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)-10s] %(levelname)-5s %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("server")


async def _ledger_error_handler(request: Request, exc: LedgerError):
    headers = None
    if isinstance(exc, CooldownActive):
        headers = {"Retry-After": str(max(1, int(exc.retry_after)))}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


class MiningPlatform:
    """Ledger services plus the REST API in one process."""

    def __init__(
        self,
        api_port: int = 8080,
        db_path: str = "data/ledger.db",
        config: Optional[LedgerConfig] = None,
        admin_key: str = DEFAULT_ADMIN_KEY,
        jwt_secret: str = "",
        run_scheduler: bool = True,
    ):
        self.api_port = api_port
        self.db_path = db_path
        self.config = config or LedgerConfig()
        self._admin_key = admin_key
        self._jwt_secret = jwt_secret
        self._run_scheduler = run_scheduler

        # Ledger + auth are initialized async in init_services()
        self.ledger: Optional[Ledger] = None
        self.auth: Optional[AuthService] = None
        self._uvicorn_server: Optional[uvicorn.Server] = None

        self.app = FastAPI(title="Hashledger Mining Platform", version=__version__)
        self.app.state.server = self
        self.app.add_exception_handler(LedgerError, _ledger_error_handler)
        register_all_routers(self.app)

        @self.app.get("/")
        async def root():
            return {
                "service": "Hashledger Mining Platform",
                "version": __version__,
                "api_port": self.api_port,
                "scheduler": bool(self.ledger and self.ledger.scheduler.running),
            }

    async def init_services(self):
        """Open the ledger and wire auth (must be called in async context)."""
        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self.ledger = Ledger(self.config, db_path=self.db_path)
        await self.ledger.initialize()
        self.auth = AuthService(
            self.ledger.storage, self.ledger.accounts,
            admin_key=self._admin_key, jwt_secret=self._jwt_secret,
        )
        logger.info("Services initialized (db=%s)", self.db_path)

    async def close_services(self):
        if self.ledger:
            await self.ledger.close()
            self.ledger = None

    # -------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------

    async def start(self):
        """Start storage, the block scheduler and the API server."""
        await self.init_services()
        if self._run_scheduler:
            await self.ledger.scheduler.start()

        config = uvicorn.Config(
            self.app,
            host="0.0.0.0",
            port=self.api_port,
            log_level="info",
        )
        self._uvicorn_server = uvicorn.Server(config)
        logger.info("REST API starting on port %d", self.api_port)
        try:
            await self._uvicorn_server.serve()
        finally:
            await self.close_services()

    async def stop(self):
        """Stop the API server; start() closes the ledger on its way out."""
        if self._uvicorn_server:
            self._uvicorn_server.should_exit = True


def main():
    """CLI entry point for the mining platform server."""
    parser = argparse.ArgumentParser(description="Hashledger Mining Platform Server")
    parser.add_argument("--api-port", type=int, default=8080, help="REST API port (default: 8080)")
    parser.add_argument("--db-path", default="data/ledger.db", help="SQLite database path (default: data/ledger.db)")
    parser.add_argument("--block-interval", type=float, default=None, help="Seconds between blocks (default: 3600)")
    parser.add_argument("--claim-window", type=float, default=None, help="Seconds a reward stays claimable (default: 172800)")
    parser.add_argument("--admin-key", default=DEFAULT_ADMIN_KEY, help="API key that grants the admin role")
    parser.add_argument("--jwt-secret", default="", help="HS256 secret for issued JWTs (default: random per run)")
    parser.add_argument("--no-scheduler", action="store_true", help="Do not mine blocks in the background")
    args = parser.parse_args()

    config = LedgerConfig()
    if args.block_interval is not None:
        config.block_interval_sec = args.block_interval
    if args.claim_window is not None:
        config.claim_window_sec = args.claim_window

    server = MiningPlatform(
        api_port=args.api_port, db_path=args.db_path, config=config,
        admin_key=args.admin_key, jwt_secret=args.jwt_secret,
        run_scheduler=not args.no_scheduler,
    )

    logger.info("=" * 60)
    logger.info("  Hashledger Mining Platform Server")
    logger.info("  REST API:    http://localhost:%d", args.api_port)
    logger.info("  Database:    %s", args.db_path)
    logger.info("  Block every: %ss", config.block_interval_sec)
    logger.info("  Max supply:  %s GBTC", config.max_supply)
    if args.admin_key == DEFAULT_ADMIN_KEY:
        logger.warning("  Using the default admin key; pass --admin-key in production")
    logger.info("=" * 60)

    try:
        asyncio.run(server.start())
    except KeyboardInterrupt:
        logger.info("Shutting down...")


if __name__ == "__main__":
    main()
