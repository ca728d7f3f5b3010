from fastapi.testclient import TestClient

from qvote.main import (
    ALLOWED_ORIGINS,
    SECURITY_HEADERS,
    STRICT_TRANSPORT_SECURITY,
    app,
    rejection_status,
)
from qvote.engine.errors import (
    AlreadySubmitted,
    BudgetExceeded,
    EmptyBallot,
    NotActive,
    SettlementFailed,
)

client = TestClient(app)

def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_security_headers_present():
    response = client.get("/health")
    for header, value in SECURITY_HEADERS.items():
        assert response.headers.get(header) == value
    assert response.headers.get("Strict-Transport-Security") == STRICT_TRANSPORT_SECURITY


def test_cors_preflight_allows_admin_token_header():
    origin = ALLOWED_ORIGINS[0]
    response = client.options(
        "/events/demo/raw.csv",
        headers={
            "origin": origin,
            "access-control-request-method": "GET",
            "access-control-request-headers": "x-admin-token",
        },
    )

    assert response.status_code == 200
    assert response.headers.get("access-control-allow-origin") == origin
    assert response.headers.get("access-control-allow-credentials") == "true"


def test_rejection_status_mapping():
    assert rejection_status(AlreadySubmitted()) == 409
    assert rejection_status(NotActive(NotActive.BEFORE_START)) == 403
    assert rejection_status(SettlementFailed()) == 503
    assert rejection_status(BudgetExceeded(used=5, limit=4)) == 400
    assert rejection_status(EmptyBallot()) == 400
