import json

import pytest

from prism_cli.models import Subnet, VirtualMachine
from prism_cli.prism_client import PrismAPIError


def make_nic(mac="50:6b:8d:00:00:01", ips=(), subnet_uuid="subnet-a"):
    nic = {
        "mac_address": mac,
        "ip_endpoint_list": [{"ip": ip, "type": "ASSIGNED"} for ip in ips],
        "nic_type": "NORMAL_NIC",
    }
    if subnet_uuid is not None:
        nic["subnet_reference"] = {"kind": "subnet", "uuid": subnet_uuid}
    return nic


def make_vm(name="node-1", uuid="vm-1", nics=None, spec_version=3):
    if nics is None:
        nics = [make_nic(ips=["10.0.0.10"])]
    return {
        "api_version": "3.1",
        "metadata": {"kind": "vm", "uuid": uuid, "spec_version": spec_version},
        "spec": {
            "name": name,
            "cluster_reference": {"kind": "cluster", "uuid": "cluster-1"},
            "resources": {"num_sockets": 2, "memory_size_mib": 4096, "nic_list": nics},
        },
        "status": {"name": name, "state": "COMPLETE"},
    }


def make_subnet(uuid="subnet-a", name="vlan-10", subnet_ip="10.0.0.0", prefix_length=24):
    resources = {"subnet_type": "VLAN", "vlan_id": 10}
    if subnet_ip is not None:
        resources["ip_config"] = {"subnet_ip": subnet_ip, "prefix_length": prefix_length}
    return {
        "metadata": {"kind": "subnet", "uuid": uuid},
        "spec": {"name": name, "resources": resources},
    }


class FakePrismClient:
    """Stands in for PrismClient, recording every call."""

    def __init__(self, vms=(), subnets=(), update_error=None):
        self.vms = list(vms)
        self.subnets = {s["metadata"]["uuid"]: s for s in subnets}
        self.update_error = update_error
        self.calls = []
        self.updates = []

    def list_vm_entities(self):
        self.calls.append(("list_vms",))
        return json.loads(json.dumps(self.vms))

    def list_vms(self):
        return [VirtualMachine.from_api(e) for e in self.list_vm_entities()]

    def get_vm(self, uuid):
        self.calls.append(("get_vm", uuid))
        for payload in self.vms:
            if payload["metadata"]["uuid"] == uuid:
                return VirtualMachine.from_api(payload)
        raise PrismAPIError(f"GET /vms/{uuid} failed with HTTP 404", status=404)

    def get_subnet(self, uuid):
        self.calls.append(("get_subnet", uuid))
        if uuid not in self.subnets:
            raise PrismAPIError(f"GET /subnets/{uuid} failed with HTTP 404", status=404)
        return Subnet.from_api(self.subnets[uuid])

    def update_vm(self, uuid, intent):
        self.calls.append(("update_vm", uuid))
        if self.update_error is not None:
            raise self.update_error
        self.updates.append((uuid, intent))
        # Apply the update so that later runs see it
        for payload in self.vms:
            if payload["metadata"]["uuid"] == uuid:
                payload["spec"] = json.loads(json.dumps(intent["spec"]))
                payload["metadata"]["spec_version"] += 1
        return {
            "status": {"state": "PENDING", "execution_context": {"task_uuid": "task-1"}},
            "spec": intent["spec"],
            "metadata": intent["metadata"],
        }


@pytest.fixture
def fake_client():
    return FakePrismClient(vms=[make_vm()], subnets=[make_subnet()])


@pytest.fixture
def config_dir(tmp_path):
    """A config directory with valid secret.conf and endpoint.conf."""
    (tmp_path / "secret.conf").write_text(json.dumps({
        "type": "basic_auth",
        "data": {
            "prismCentral": {"username": "admin", "password": "s3cret"},
            "prismElements": None,
        },
    }))
    (tmp_path / "endpoint.conf").write_text(json.dumps({
        "prismCentral": {"address": "pc.example.com", "port": 9440},
    }))
    return tmp_path
