import mongomock
import pytest
from fastapi.testclient import TestClient

from database import Database, get_db
from main import app


@pytest.fixture
def db():
    return Database(client=mongomock.MongoClient(), name="reseller_test")


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(client):
    creds = {"email": "owner@reseller.io", "password": "s3cret-pass"}
    assert client.post("/auth/signup", json=creds).status_code == 201
    res = client.post("/auth/login", json=creds)
    assert res.status_code == 200
    # Tests authenticate with the bearer header; drop the cookie login just set.
    client.cookies.clear()
    return {"Authorization": f"Bearer {res.json()['access_token']}"}


@pytest.fixture
def make_source(client, auth_headers):
    def _make(name="Dhaka Wholesale", description="Main supplier"):
        res = client.post("/sources", json={"name": name, "description": description}, headers=auth_headers)
        assert res.status_code == 201, res.text
        return res.json()
    return _make


@pytest.fixture
def make_product(client, auth_headers, make_source):
    def _make(source_id=None, name="Cotton Saree", price=100.0, buying_price=80.0, **extra):
        if source_id is None:
            source_id = make_source()["id"]
        body = {"name": name, "price": price, "buying_price": buying_price, "source": source_id, **extra}
        res = client.post("/products", json=body, headers=auth_headers)
        assert res.status_code == 201, res.text
        return res.json()
    return _make


def order_payload(lines, **extra):
    body = {
        "title": "Eid order",
        "customer_name": "Rahim Uddin",
        "phone": "+880 1711 000000",
        "address": "12 Lake Road, Dhaka",
        "payment_method": "Cash on delivery",
        "products": lines,
    }
    body.update(extra)
    return body
