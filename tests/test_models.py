from poolsync.api_models import DataCenter, Group, LoadBalancer, Node, Server, ServiceInstance


def test_node_equality_ignores_status():
    a = Node.model_validate({"ipAddress": "10.0.0.5", "privatePort": 8080, "status": "enabled"})
    b = Node(ip_address="10.0.0.5", private_port=8080)
    assert a == b
    assert hash(a) == hash(b)
    assert a != Node(ip_address="10.0.0.5", private_port=8081)
    assert a != Node(ip_address="10.0.0.6", private_port=8080)


def test_node_to_wire_uses_api_field_names():
    assert Node(ip_address="10.0.0.5", private_port=80).to_wire() == {"ipAddress": "10.0.0.5", "privatePort": 80}


def test_load_balancer_parses_nested_pools():
    lb = LoadBalancer.model_validate(
        {
            "id": "abc",
            "name": "web",
            "ipAddress": "203.0.113.1",
            "pools": [{"id": "p1", "port": 443, "nodes": [{"ipAddress": "10.0.0.5", "privatePort": 32768}]}],
            "links": [{"rel": "self"}],
        }
    )
    assert lb.ip_address == "203.0.113.1"
    assert lb.pools[0].nodes == [Node(ip_address="10.0.0.5", private_port=32768)]
    assert not lb.pools[0].is_empty


def test_group_and_datacenter_links():
    g = Group.model_validate(
        {
            "id": "g1",
            "groups": [{"id": "g2", "groups": [{"id": "g3"}]}],
            "links": [{"rel": "server", "id": "WEB01"}, {"rel": "parentGroup", "id": "g0"}, {"rel": "server", "id": "WEB02"}],
        }
    )
    assert g.server_names() == ["WEB01", "WEB02"]
    assert g.groups[0].groups[0].id == "g3"

    dc = DataCenter.model_validate({"id": "GB3", "links": [{"rel": "self"}, {"rel": "group", "id": "r1"}]})
    assert dc.group_ids() == ["r1"]


def test_server_internal_for_returns_first_public_match():
    s = Server.model_validate(
        {
            "name": "WEB01",
            "details": {
                "ipAddresses": [
                    {"internal": "10.0.0.9"},
                    {"public": "1.2.3.4", "internal": "10.0.0.5"},
                    {"public": "1.2.3.4", "internal": "10.0.0.7"},
                ]
            },
        }
    )
    assert s.internal_for("1.2.3.4") == "10.0.0.5"
    assert s.internal_for("9.9.9.9") is None
    assert Server.model_validate({"name": "bare"}).internal_for("1.2.3.4") is None


def test_service_instance_accepts_numeric_ports():
    inst = ServiceInstance(name="web", host_ip="1.2.3.4", host_port=32768, exposed_port=443)
    assert inst.host_port == "32768"
    assert inst.exposed_port == "443"
    assert inst.attrs == {}
