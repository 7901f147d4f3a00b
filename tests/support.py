"""Builders shared by the test suites."""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from ordering.custom import CustomOrderRequest
from shared.http import install_error_handlers

ADMIN_TOKEN = "admin-token"
IPN_SECRET = "ipn-secret"


def custom_order_request(**overrides) -> CustomOrderRequest:
    values = {
        "client_email": "Client@Example.com ",
        "bot_description": "A trading bot that watches BTC/USDT and buys every dip larger than 3%.",
        "bot_features": "Telegram alerts, stop loss, daily report",
        "budget_amount": 1300.0,
        "payment_method": "mpesa",
        "refund_method": "mpesa",
        "refund_mpesa_number": "254 712 345 678",
        "refund_mpesa_name": "Jane Wanjiku",
        "terms_accepted": True,
    }
    values.update(overrides)
    return CustomOrderRequest(**values)


def crypto_order_request(**overrides) -> CustomOrderRequest:
    values = {
        "payment_method": "crypto",
        "refund_method": "crypto",
        "refund_mpesa_number": None,
        "refund_mpesa_name": None,
        "refund_crypto_wallet": "TXYZabc123walletaddress",
        "refund_crypto_network": "TRC20",
    }
    values.update(overrides)
    return custom_order_request(**values)


def build_test_app(*routers) -> FastAPI:
    app = FastAPI()
    install_error_handlers(app)
    for router in routers:
        app.include_router(router)
    return app


def make_client(app: FastAPI, cookies: dict | None = None) -> TestClient:
    client = TestClient(app)
    for name, value in (cookies or {}).items():
        client.cookies.set(name, value)
    return client
