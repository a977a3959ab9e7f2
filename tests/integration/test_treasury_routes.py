import asyncio
import inspect
from decimal import Decimal

from treasury.domain.errors import RouterError
from treasury.api.routes import admin, status, vault


async def fund(client, wbtc="6", cbbtc="4"):
    await client.post("/api/v1/vault/credit", json={"asset": "WBTC", "amount": wbtc})
    await client.post("/api/v1/vault/credit", json={"asset": "cbBTC", "amount": cbbtc})


async def test_health(client):
    r = await client.get("/api/v1/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}

    r = await client.get("/api/v1/ready")
    body = r.json()
    assert body["status"] == "ready"
    assert body["db_connected"] is True
    assert body["controller_loaded"] is True
    assert body["mode"] == "NORMAL"


async def test_status_payloads_keep_field_order(client):
    r = await client.get("/api/v1/status/strategy")
    assert r.status_code == 200
    body = r.json()
    assert list(body)[:3] == ["is_paused", "is_circuit_breaker_triggered", "is_in_oracle_failure_mode"]
    assert body["total_holdings"] == "0"

    r = await client.get("/api/v1/status/allocation")
    assert list(r.json()) == [
        "asset_a_balance", "asset_b_balance", "third_balance", "total_balance",
        "asset_a_percent_bps", "asset_b_percent_bps", "asset_c_percent_bps",
    ]

    for path in ("circuit-breaker", "oracle", "rate-limit", "diagnostics"):
        r = await client.get(f"/api/v1/status/{path}")
        assert r.status_code == 200

    r = await client.get("/api/v1/status/mode")
    assert r.json() == {"mode": "NORMAL"}


async def test_vault_credit_and_deposit_limit(client):
    r = await client.post("/api/v1/vault/credit", json={"asset": "WBTC", "amount": "0.1"})
    assert r.status_code == 200
    assert Decimal(r.json()["balance"]) == Decimal("0.1")

    r = await client.get("/api/v1/status/allocation")
    body = r.json()
    assert Decimal(body["asset_a_balance"]) == Decimal("0.1")
    assert Decimal(body["third_balance"]) == Decimal("0")

    r = await client.get("/api/v1/vault/deposit-limit")
    assert Decimal(r.json()["available_deposit_limit"]) == Decimal("99.9")

    r = await client.post("/api/v1/vault/debit", json={"asset": "WBTC", "amount": "5"})
    assert r.status_code == 409


async def test_keeper_report_executes_and_is_persisted(client):
    await fund(client)

    r = await client.post("/api/v1/keeper/report")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "executed"
    assert body["attempt"]["outcome"] == "SUCCESS"
    assert body["record_id"] > 0

    r = await client.post("/api/v1/keeper/tend")
    assert r.json()["reason"] == "min_interval_not_elapsed"

    r = await client.get("/api/v1/status/attempts?limit=10")
    data = r.json()
    assert data["count"] == 2
    assert data["outcomes"] == {"SUCCESS": 1}
    assert data["attempts"][0]["trigger"] == "tend"


async def test_breaker_trip_visible_through_status(client, router, clock):
    await fund(client)
    router.error = RouterError("reverted")
    for _ in range(3):
        r = await client.post("/api/v1/keeper/report")
        assert r.json()["status"] == "failed"
        clock.advance(3600)

    body = (await client.get("/api/v1/status/circuit-breaker")).json()
    assert body["tripped"] is True
    assert body["fail_count"] == 3

    r = await client.post("/api/v1/keeper/report")
    assert r.json()["reason"] == "circuit_breaker_open"
    assert (await client.get("/api/v1/status/diagnostics")).json()["status_text"] == "CIRCUIT_BREAKER"


async def test_admin_setters_reject_out_of_bounds(client):
    r = await client.post("/api/v1/admin/swap-fee", json={"bps": 200})
    assert r.status_code == 400

    r = await client.post("/api/v1/admin/max-slippage", json={"bps": 50})
    assert r.status_code == 200
    assert r.json() == {"max_slippage_bps": 50}


async def test_admin_pause_and_oracle_override(client):
    r = await client.post("/api/v1/admin/pause")
    assert r.json()["mode"] == "PAUSED"
    assert (await client.get("/api/v1/vault/deposit-limit")).json()["available_deposit_limit"] == "0"

    r = await client.post("/api/v1/admin/unpause")
    assert r.json()["mode"] == "NORMAL"

    r = await client.post("/api/v1/admin/oracle-failure-mode/enable")
    assert r.json()["mode"] == "ORACLE_FAILURE_MODE"
    r = await client.post("/api/v1/admin/oracle-failure-mode/disable")
    assert r.json()["mode"] == "NORMAL"


async def test_emergency_withdraw_flow(client):
    await fund(client, "2", "3")

    r = await client.post("/api/v1/admin/emergency-withdraw", json={"amount": "1"})
    assert r.status_code == 409

    r = await client.post("/api/v1/admin/shutdown")
    assert r.json()["mode"] == "SHUTDOWN"

    r = await client.post("/api/v1/admin/emergency-withdraw", json={"amount": "4"})
    assert r.status_code == 200
    withdrawn = r.json()["withdrawn"]
    assert Decimal(withdrawn["cbBTC"]) == Decimal("3")
    assert Decimal(withdrawn["WBTC"]) == Decimal("1")


def test_state_routes_run_on_the_event_loop():
    for module in (admin, vault, status):
        for route in module.router.routes:
            assert inspect.iscoroutinefunction(route.endpoint), route.path


async def test_credit_during_in_flight_swap_is_kept(client, controller, router):
    await fund(client)
    router.hold = asyncio.Event()
    report = asyncio.create_task(client.post("/api/v1/keeper/report"))
    await router.entered.wait()

    r = await client.post("/api/v1/vault/credit", json={"asset": "WBTC", "amount": "0.5"})
    assert r.status_code == 200

    router.hold.set()
    r = await report
    assert r.json()["status"] == "executed"
    assert controller.state.balance_a == Decimal("5.5")
    assert controller.state.balance_b == Decimal("5")


def test_request_models_publish_examples():
    schema = vault.BalanceChangeRequest.model_json_schema()
    assert schema["properties"]["asset"]["examples"] == ["WBTC"]
    schema = admin.BpsRequest.model_json_schema()
    assert schema["properties"]["bps"]["examples"] == [50]
