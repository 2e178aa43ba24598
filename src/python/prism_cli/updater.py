"""Locate a node, reconcile its NIC addresses and submit the update."""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .locator import locate_vm
from .models import VirtualMachine
from .prism_client import PrismAPIError, PrismClient
from .reconciler import ReconcileResult, reconcile, validate_arguments

logger = logging.getLogger(__name__)


class UpdateRejectedError(Exception):
    """Raised when Prism Central rejects or fails a VM update."""

    def __init__(self, message: str, transient: bool = False):
        super().__init__(message)
        self.transient = transient


@dataclass
class NodeUpdateOutcome:
    """Result of update_node_addresses()."""

    vm: VirtualMachine
    reconcile: ReconcileResult
    intent: Optional[dict] = None
    response: Optional[dict] = None

    @property
    def submitted(self) -> bool:
        return self.response is not None


def build_intent(vm: VirtualMachine, changed: Iterable[int]) -> dict:
    """Build the PUT body: existing metadata (spec_version included) and full spec.

    Only the NICs listed in changed get their ip_endpoint_list rewritten.
    """
    return {
        "api_version": vm.api_version,
        "metadata": vm.metadata,
        "spec": vm.spec_with_interfaces(changed),
    }


def submit_update(client: PrismClient, vm: VirtualMachine, intent: dict) -> dict:
    """Send the VM's spec back to Prism Central.

    Args:
        client: Prism Central client
        vm: VM with modified interfaces
        intent: Body from build_intent()

    Returns:
        The intent response

    Raises:
        UpdateRejectedError: If the update fails (stale spec_version,
            validation error, network error)
    """
    try:
        return client.update_vm(vm.uuid, intent)
    except PrismAPIError as e:
        raise UpdateRejectedError(
            f"Update of VM {vm.name} (uuid {vm.uuid}) failed: {e}",
            transient=e.transient,
        ) from e


def list_inventory(client: PrismClient) -> list[VirtualMachine]:
    """Return every VM known to Prism Central."""
    vms = client.list_vms()
    logger.info("Found %d VMs", len(vms))
    return vms


def update_node_addresses(
    client: PrismClient,
    node_name: str,
    add_address: Optional[str] = None,
    remove_address: Optional[str] = None,
    vm_uuid: Optional[str] = None,
    dry_run: bool = False,
) -> NodeUpdateOutcome:
    """Add or remove one IP address on the node called node_name.

    With neither address set, the node's interfaces and subnets are only
    reported. Arguments are validated before any request is made.

    Args:
        client: Prism Central client
        node_name: Exact VM name
        add_address: Address to add
        remove_address: Address to remove
        vm_uuid: Disambiguates VMs sharing node_name
        dry_run: Reconcile but do not submit

    Returns:
        NodeUpdateOutcome

    Raises:
        InvalidArgumentsError: If both addresses are set or one is invalid
        VMNotFoundError, AmbiguousVMError: If the node cannot be located
        SubnetLookupError, MalformedSubnetError, NoMatchingSubnetError:
            From reconciliation
        UpdateRejectedError: If the update is rejected
        PrismAPIError: If listing or fetching the VM fails
    """
    add, remove = validate_arguments(add_address, remove_address)

    listed = locate_vm(list_inventory(client), node_name, vm_uuid)

    # The list payload is not guaranteed to be complete, fetch the VM itself
    logger.info("Getting further info for VM %s with UUID %s", listed.name, listed.uuid)
    vm = client.get_vm(listed.uuid)

    result = reconcile(vm, client.get_subnet, add=add, remove=remove)
    outcome = NodeUpdateOutcome(vm=vm, reconcile=result)

    if not result.changed:
        if add is not None or remove is not None:
            logger.info("No change needed on VM %s", vm.name)
        return outcome

    outcome.intent = build_intent(vm, result.changed)
    if dry_run:
        logger.info("Dry run, not updating VM %s", vm.name)
        return outcome

    outcome.response = submit_update(client, vm, outcome.intent)
    logger.info("Submitted update of VM %s", vm.name)
    return outcome
