"""Find a VM in the inventory by name."""

from typing import Iterable, Optional

from .models import VirtualMachine


class VMNotFoundError(Exception):
    """Raised when no VM matches the requested name."""

    pass


class AmbiguousVMError(Exception):
    """Raised when several VMs share the requested name."""

    def __init__(self, name: str, uuids: list[str]):
        super().__init__(
            f"{len(uuids)} VMs are named '{name}': {', '.join(uuids)}. "
            "Pass --vm-uuid to choose one."
        )
        self.name = name
        self.uuids = uuids


def find_vms(vms: Iterable[VirtualMachine], name: str) -> list[VirtualMachine]:
    """Return every VM whose name equals name exactly, in inventory order."""
    return [vm for vm in vms if vm.name == name]


def locate_vm(
    vms: Iterable[VirtualMachine],
    name: str,
    uuid: Optional[str] = None,
) -> VirtualMachine:
    """Return the single VM called name.

    Args:
        vms: VM inventory
        name: Exact, case-sensitive VM name
        uuid: Picks one VM when several share the name

    Returns:
        The matching VM

    Raises:
        VMNotFoundError: If nothing matches
        AmbiguousVMError: If several VMs match and uuid does not pick one
    """
    matches = find_vms(vms, name)
    if uuid is not None:
        matches = [vm for vm in matches if vm.uuid == uuid]
        if not matches:
            raise VMNotFoundError(f"No VM named '{name}' with UUID {uuid}")

    if not matches:
        raise VMNotFoundError(f"No VM named '{name}'")
    if len(matches) > 1:
        raise AmbiguousVMError(name, [vm.uuid for vm in matches])
    return matches[0]
