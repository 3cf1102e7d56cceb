"""Router package - collects all API routers and registers them on the FastAPI app."""

from fastapi import FastAPI

from hashledger.routers import account, admin, mining, wallet


def register_all_routers(app: FastAPI):
    app.include_router(account.router)
    app.include_router(mining.router)
    app.include_router(wallet.router)
    app.include_router(admin.router)
