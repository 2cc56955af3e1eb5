"""The application exposes every RPC operation as a POST route."""

from fastapi.routing import APIRoute

from marketplace.main import create_app

RPC_ROUTES = {
    "/v1/equipment/search",
    "/v1/equipment/get",
    "/v1/brokerage/search",
    "/v1/brokerage/get",
    "/v1/category/list",
    "/v1/booking/create",
    "/v1/booking/cancel",
    "/v1/booking/get",
    "/v1/booking/list",
    "/v1/admin/listing/create",
    "/v1/admin/listing/update",
    "/v1/admin/listing/delete",
    "/v1/admin/category/create",
    "/v1/admin/category/update",
    "/v1/admin/category/delete",
    "/v1/admin/booking/list",
    "/v1/admin/booking/update-status",
    "/v1/admin/booking/delete",
    "/v1/admin/dashboard/stats",
    "/v1/admin/cache/stats",
    "/v1/admin/cache/clear",
    "/v1/health/ping",
}


def test_rpc_operations_are_post_routes():
    app = create_app()
    routes = {route.path: route.methods for route in app.routes if isinstance(route, APIRoute)}

    missing = RPC_ROUTES - routes.keys()
    assert not missing
    for path in RPC_ROUTES:
        assert routes[path] == {"POST"}


def test_health_endpoints_are_get_routes():
    app = create_app()
    routes = {route.path: route.methods for route in app.routes if isinstance(route, APIRoute)}

    for path in ("/health", "/ready", "/info", "/metrics"):
        assert routes[path] == {"GET"}
