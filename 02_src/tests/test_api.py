"""HTTP tests for the sample applications."""

import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from cloudsamples.api import SAMPLES, create_fastapi_app
from cloudsamples.api.app import (
    create_bus_manager_app,
    create_bus_node_app,
    create_gateway_app,
    create_gateway_nacos_app,
    create_jwt_app,
    create_observation_app,
    create_security_app,
)
from cloudsamples.api.routes.gateway import FALLBACK_MESSAGE
from cloudsamples.api.routes.security import GREETING


def echo_upstream(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"url": str(request.url)})


async def slow_upstream(request: httpx.Request) -> httpx.Response:
    await asyncio.sleep(1)
    return httpx.Response(200, text="too late")


class TestSamples:
    """Tests for sample selection."""

    def test_all_samples_registered(self):
        """Test the sample names."""
        assert set(SAMPLES) == {
            "security",
            "security-jwt",
            "gateway-circuitbreaker",
            "gateway-nacos",
            "bus-node",
            "bus-manager",
            "observation",
        }

    def test_unknown_sample(self):
        """Test that unknown names are rejected."""
        with pytest.raises(ValueError):
            create_fastapi_app("nope")


class TestSecurityApp:
    """Tests for the basic-auth sample."""

    def test_greeting_requires_basic_auth(self, make_application):
        """Test 401 without credentials."""
        app = create_security_app(
            make_application({"spring.security.user.password": "pw"})
        )
        with TestClient(app) as client:
            response = client.get("/")

        assert response.status_code == 401
        assert response.headers["www-authenticate"].startswith("Basic")

    def test_greeting(self, make_application):
        """Test the exact greeting for an authenticated user."""
        app = create_security_app(
            make_application({"spring.security.user.password": "pw"})
        )
        with TestClient(app) as client:
            response = client.get("/", auth=("user", "pw"))

        assert response.status_code == 200
        assert response.text == "<h1>你好，Spring Security！</h1>"
        assert response.text == GREETING
        assert response.headers["content-type"].startswith("text/html")

    def test_wrong_password(self, make_application):
        """Test 401 for bad credentials."""
        app = create_security_app(
            make_application({"spring.security.user.password": "pw"})
        )
        with TestClient(app) as client:
            response = client.get("/", auth=("user", "nope"))

        assert response.status_code == 401

    def test_generated_password(self, make_application, caplog):
        """Test that a password is generated and logged when none is set."""
        with caplog.at_level("WARNING"):
            app = create_security_app(make_application())

        messages = [r.getMessage() for r in caplog.records]
        generated = [m for m in messages if m.startswith("Using generated security password: ")]
        assert generated
        password = generated[0].split(": ", 1)[1].split("\n", 1)[0]

        with TestClient(app) as client:
            assert client.get("/", auth=("user", password)).status_code == 200


class TestJwtApp:
    """Tests for the JWT sample."""

    @pytest.fixture
    def client(self, make_application):
        app = create_jwt_app(
            make_application(
                {
                    "spring.security.user.name": "alice",
                    "spring.security.user.password": "pw",
                    "spring.security.admin.password": "admin-pw",
                    "jwt.secret": "test-secret",
                }
            )
        )
        with TestClient(app) as client:
            yield client

    def test_home_is_public(self, client):
        """Test GET / without a token."""
        response = client.get("/")
        assert response.status_code == 200
        assert response.text == GREETING

    def test_login_and_user_info(self, client):
        """Test the token flow."""
        login = client.post("/login", json={"username": "alice", "password": "pw"})
        assert login.status_code == 200
        body = login.json()
        assert body["status"] == 200
        assert body["jwt"]

        info = client.get("/user/info", headers={"Authorization": f"Bearer {body['jwt']}"})

        assert info.status_code == 200
        assert info.json() == {"username": "alice", "authorities": ["ROLE_USER"]}

    def test_bad_login(self, client):
        """Test 401 on bad credentials."""
        response = client.post("/login", json={"username": "alice", "password": "nope"})
        assert response.status_code == 401

    def test_user_info_requires_token(self, client):
        """Test missing and invalid tokens."""
        assert client.get("/user/info").status_code == 401
        invalid = client.get("/user/info", headers={"Authorization": "Bearer not-a-jwt"})
        assert invalid.status_code == 401

    @staticmethod
    def bearer(client, username: str, password: str) -> dict:
        login = client.post("/login", json={"username": username, "password": password})
        assert login.status_code == 200
        return {"Authorization": f"Bearer {login.json()['jwt']}"}

    def test_admin_info(self, client):
        """Test the seeded administrator on both info endpoints."""
        headers = self.bearer(client, "admin", "admin-pw")

        admin = client.get("/admin/info", headers=headers)

        assert admin.status_code == 200
        assert admin.json() == {"username": "admin", "authorities": ["ROLE_USER", "ROLE_ADMIN"]}
        assert client.get("/user/info", headers=headers).status_code == 200

    def test_admin_info_requires_admin_role(self, client):
        """Test 403 for a USER token and 401 without a token."""
        headers = self.bearer(client, "alice", "pw")

        assert client.get("/admin/info", headers=headers).status_code == 403
        assert client.get("/admin/info").status_code == 401

    def test_login_is_case_insensitive(self, client):
        """Test that stored usernames match regardless of case."""
        headers = self.bearer(client, "ALICE", "pw")

        info = client.get("/user/info", headers=headers)

        assert info.json()["username"] == "alice"


class TestGatewayApp:
    """Tests for the circuit breaker gateway sample."""

    def make_client(self, make_application, upstream) -> TestClient:
        application = make_application(
            {
                "spring.application.name": "gateway-circuitbreaker",
                "gateway.route-uri": "http://upstream.test",
                "resilience4j.timelimiter.instances.slowcmd.timeout-duration": "100ms",
            }
        )
        return TestClient(
            create_gateway_app(application, transport=httpx.MockTransport(upstream))
        )

    def test_fallback_endpoint(self, make_application):
        """Test the exact fallback text."""
        with self.make_client(make_application, echo_upstream) as client:
            response = client.get("/circuitbreakerfallback")

        assert response.status_code == 200
        assert response.text == "This is a fallback"
        assert response.text == FALLBACK_MESSAGE

    def test_path_route(self, make_application):
        """Test /get is forwarded upstream."""
        with self.make_client(make_application, echo_upstream) as client:
            response = client.get("/get")

        assert response.status_code == 200
        assert response.json()["url"] == "http://upstream.test/get"

    def test_host_route(self, make_application):
        """Test routing on the Host header."""
        with self.make_client(make_application, echo_upstream) as client:
            response = client.get("/headers", headers={"Host": "www.myhost.org"})

        assert response.status_code == 200
        assert response.json()["url"] == "http://upstream.test/headers"

    def test_rewrite_route(self, make_application):
        """Test /foo/{segment} rewritten to /{segment}."""
        with self.make_client(make_application, echo_upstream) as client:
            response = client.get("/foo/get", headers={"Host": "www.rewrite.org"})

        assert response.status_code == 200
        assert response.json()["url"] == "http://upstream.test/get"

    def test_unrouted_is_404(self, make_application):
        """Test requests matching no route."""
        with self.make_client(make_application, echo_upstream) as client:
            assert client.get("/nowhere").status_code == 404

    def test_circuit_breaker_timeout(self, make_application):
        """Test 504 when the breaker times out without fallback."""
        with self.make_client(make_application, slow_upstream) as client:
            response = client.get("/delay/3", headers={"Host": "www.circuitbreaker.org"})

        assert response.status_code == 504

    def test_circuit_breaker_fallback(self, make_application):
        """Test the fallback answers when the breaker times out."""
        with self.make_client(make_application, slow_upstream) as client:
            response = client.get(
                "/delay/3", headers={"Host": "www.circuitbreakerfallback.org"}
            )

        assert response.status_code == 200
        assert response.text == "This is a fallback"


class TestGatewayNacosApp:
    """Tests for the discovery gateway with /echoAppName."""

    def make_client(self, make_application, properties: dict | None = None) -> TestClient:
        application = make_application(
            {"spring.application.name": "gateway-nacos", "server.port": 8080, **(properties or {})}
        )
        return TestClient(
            create_gateway_nacos_app(application, transport=httpx.MockTransport(echo_upstream))
        )

    def test_echo_app_name(self, make_application):
        """Test that /echoAppName returns spring.application.name."""
        with self.make_client(make_application) as client:
            response = client.get("/echoAppName")

        assert response.status_code == 200
        assert response.text == "gateway-nacos"

    def test_echo_follows_environment_variable(self, make_application):
        """Test that the OS environment overrides the name."""
        application = make_application(
            {"spring.application.name": "gateway-nacos"},
            environ={"SPRING_APPLICATION_NAME": "renamed"},
        )
        with TestClient(create_gateway_nacos_app(application)) as client:
            assert client.get("/echoAppName").text == "renamed"

    def test_registers_itself(self, make_application, service_registry):
        """Test registration on startup and removal on shutdown."""
        with self.make_client(make_application):
            instances = service_registry.get_instances("gateway-nacos")
            assert [(i.host, i.port) for i in instances] == [("127.0.0.1", 8080)]

        assert service_registry.get_instances("gateway-nacos") == []

    def test_discovery_route(self, make_application):
        """Test /{service}/** forwarded to the registered instance."""
        with self.make_client(make_application) as client:
            response = client.get("/gateway-nacos/echoAppName")

        assert response.status_code == 200
        assert response.json()["url"] == "http://127.0.0.1:8080/echoAppName"

    def test_unknown_service_is_404(self, make_application):
        """Test services without instances."""
        with self.make_client(make_application) as client:
            assert client.get("/other/echoAppName").status_code == 404


class TestBusNodeApp:
    """Tests for the bus node sample."""

    @pytest.fixture
    def node(self, make_application):
        return make_application({"spring.application.name": "bus-node", "server.port": 8080})

    def test_order_disabled_by_default(self, node):
        """Test order.create-enabled unset."""
        with TestClient(create_bus_node_app(node)) as client:
            response = client.post("/order/create", params={"name": "book"})

        assert response.status_code == 200
        assert response.text == "Creating order is disabled!"

    def test_order_enabled_by_configuration(self, make_application):
        """Test order.create-enabled=true from configuration."""
        application = make_application(
            {"spring.application.name": "bus-node"},
            environ={"ORDER_CREATE_ENABLED": "true"},
        )
        with TestClient(create_bus_node_app(application)) as client:
            response = client.post("/order/create", params={"name": "book"})

        assert response.text == "Success to create book order!"

    def test_order_validation(self, node):
        """Test missing and blank names."""
        with TestClient(create_bus_node_app(node)) as client:
            missing = client.post("/order/create")
            blank = client.post("/order/create", params={"name": "  "})

        assert missing.text == "Required request parameter 'name' is not present"
        assert blank.text == "name is blank!"

    def test_busenv_enables_orders(self, node):
        """Test /actuator/busenv switching the order flag."""
        with TestClient(create_bus_node_app(node)) as client:
            changed = client.post(
                "/actuator/busenv", json={"name": "order.create-enabled", "value": True}
            )
            prop = client.get("/actuator/env/order.create-enabled")
            response = client.post("/order/create", params={"name": "book"})

        assert changed.status_code == 204
        assert prop.json() == {"name": "order.create-enabled", "value": "true"}
        assert response.text == "Success to create book order!"

    def test_unbindable_busenv_is_rejected(self, node):
        """Test that a value order.create-enabled cannot take is refused and not kept."""
        with TestClient(create_bus_node_app(node)) as client:
            rejected = client.post(
                "/actuator/busenv", json={"name": "order.create-enabled", "value": "maybe"}
            )
            refreshed = client.post("/actuator/busrefresh")
            order = client.post("/order/create", params={"name": "book"})
            prop = client.get("/actuator/env/order.create-enabled")
            events = client.get("/api/bus-events")

        assert rejected.status_code == 400
        assert "order.create-enabled" in rejected.json()["detail"]
        assert refreshed.status_code == 204
        assert order.text == "Creating order is disabled!"
        assert prop.status_code == 404
        assert [e["type"] for e in events.json()] == ["RefreshRemoteEvent"]

    def test_env_unknown_property(self, node):
        """Test 404 for unknown properties."""
        with TestClient(create_bus_node_app(node)) as client:
            assert client.get("/actuator/env/no.such.key").status_code == 404

    def test_busrefresh(self, make_application):
        """Test /actuator/busrefresh re-reading the environment."""
        environ = {"ORDER_CREATE_ENABLED": "false"}
        application = make_application({"spring.application.name": "bus-node"}, environ=environ)
        with TestClient(create_bus_node_app(application)) as client:
            assert client.post("/order/create", params={"name": "book"}).text == (
                "Creating order is disabled!"
            )

            environ["ORDER_CREATE_ENABLED"] = "true"
            refreshed = client.post("/actuator/busrefresh")
            response = client.post("/order/create", params={"name": "book"})

        assert refreshed.status_code == 204
        assert response.text == "Success to create book order!"

    def test_bus_events_recorded(self, node):
        """Test that published events are listed by the observability API."""
        with TestClient(create_bus_node_app(node)) as client:
            client.post("/actuator/busenv", json={"name": "a.b", "value": "c"})
            response = client.get("/api/bus-events")

        assert response.status_code == 200
        events = response.json()
        assert [e["type"] for e in events] == ["EnvironmentChangeRemoteEvent"]
        assert events[0]["payload"] == {"values": {"a.b": "c"}}
        assert events[0]["destination_service"] == "**"


class TestBusManagerApp:
    """Tests for a manager driving a node over the shared broker."""

    def test_busenv_to_destination(self, make_application):
        """Test that only the addressed service changes."""
        manager = make_application({"spring.application.name": "bus-manager", "server.port": 8070})
        node = make_application({"spring.application.name": "bus-node", "server.port": 8080})

        with TestClient(create_bus_node_app(node)) as node_client:
            with TestClient(create_bus_manager_app(manager)) as manager_client:
                response = manager_client.post(
                    "/actuator/busenv/bus-node",
                    json={"name": "order.create-enabled", "value": "true"},
                )
                order = node_client.post("/order/create", params={"name": "book"})

        assert response.status_code == 204
        assert order.text == "Success to create book order!"
        assert manager.environment.get_property("order.create-enabled") is None

    def test_unbindable_busenv_leaves_node_working(self, make_application):
        """Test that a node rejecting a remote change still refreshes."""
        manager = make_application({"spring.application.name": "bus-manager", "server.port": 8070})
        node = make_application({"spring.application.name": "bus-node", "server.port": 8080})

        with TestClient(create_bus_node_app(node)) as node_client:
            with TestClient(create_bus_manager_app(manager)) as manager_client:
                sent = manager_client.post(
                    "/actuator/busenv/bus-node",
                    json={"name": "order.create-enabled", "value": "maybe"},
                )
                refreshed = node_client.post("/actuator/busrefresh")
                order = node_client.post("/order/create", params={"name": "book"})

        assert sent.status_code == 204
        assert refreshed.status_code == 204
        assert node.environment.get_property("order.create-enabled") is None
        assert order.text == "Creating order is disabled!"

    def test_push_notification(self, make_application):
        """Test that a notification reaches the node's recorder."""
        manager = make_application({"spring.application.name": "bus-manager", "server.port": 8070})
        node = make_application({"spring.application.name": "bus-node", "server.port": 8080})

        with TestClient(create_bus_node_app(node)):
            with TestClient(create_bus_manager_app(manager)) as manager_client:
                response = manager_client.post(
                    "/pushNotification",
                    content="hello bus",
                    headers={"Content-Type": "text/plain"},
                )
                recorded = list(node.recorder.recorded)

        assert response.status_code == 200
        assert any("Notification Message: hello bus" in text for text in recorded)
        assert any(text.startswith("=== Received From Bus ===") for text in recorded)


class TestObservationApp:
    """Tests for the observation sample and observability routes."""

    def test_demo_run_records_spans_and_meters(self, make_application):
        """Test method_a run through the API."""
        with TestClient(create_observation_app(make_application())) as client:
            run = client.post("/api/demo/method-a", params={"pause": "false"})
            events = client.get("/api/trace-events", params={"event_type": "span_finished"})
            metrics = client.get("/api/metrics")
            prometheus = client.get("/api/prometheus")

        assert run.json() == {"spans": 2}
        assert {e["data"]["name"] for e in events.json()} == {"method_a", "method_b"}
        names = {m["name"] for m in metrics.json()}
        assert {"demo.method_a.count", "demo.method_a.time", "demo.method_b.time"} <= names
        counts = [m for m in metrics.json() if m["sample"] == "demo_method_a_count_total"]
        assert [m["value"] for m in counts] == [1.0]
        assert prometheus.headers["content-type"].startswith("text/plain")
        assert "demo_method_a_count_total{" in prometheus.text

    def test_invalid_after(self, make_application):
        """Test 400 on a malformed timestamp."""
        with TestClient(create_observation_app(make_application())) as client:
            response = client.get("/api/trace-events", params={"after": "yesterday"})

        assert response.status_code == 400
