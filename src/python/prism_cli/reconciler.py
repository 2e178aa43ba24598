"""Add or remove an IP address on the VM interfaces whose subnet contains it."""

import ipaddress
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from .models import ASSIGNED, IPAddress, NetworkInterface, Subnet, VirtualMachine
from .prism_client import PrismAPIError

logger = logging.getLogger(__name__)

Address = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

# Dotted quad, octets possibly zero-padded ("010.000.000.005")
_PADDED_IPV4 = re.compile(r"^[0-9]+\.[0-9]+\.[0-9]+\.[0-9]+$")


class InvalidArgumentsError(Exception):
    """Raised when the requested addresses are missing, conflicting or invalid."""

    pass


class SubnetLookupError(Exception):
    """Raised when an attached subnet cannot be fetched."""

    pass


class MalformedSubnetError(Exception):
    """Raised when a subnet has no usable CIDR block."""

    pass


class NoMatchingSubnetError(Exception):
    """Raised when the requested address is outside every attached subnet."""

    pass


@dataclass
class ReconcileResult:
    """What reconcile() found and did.

    Attributes:
        subnets: Subnet resolved for each interface (None if it had no reference)
        matched: Indexes of interfaces whose subnet contains the address
        changed: Indexes of interfaces whose address list was modified
    """

    subnets: list[Optional[Subnet]] = field(default_factory=list)
    matched: list[int] = field(default_factory=list)
    changed: list[int] = field(default_factory=list)


def parse_address(text: str) -> Address:
    """Parse an IPv4 or IPv6 address.

    Zero-padded IPv4 octets are read as decimal, so "10.0.0.05" is 10.0.0.5.

    Raises:
        InvalidArgumentsError: If text is not an IP address
    """
    text = text.strip()
    try:
        return ipaddress.ip_address(text)
    except ValueError:
        pass

    if _PADDED_IPV4.match(text):
        octets = [int(part) for part in text.split(".")]
        if all(octet <= 255 for octet in octets):
            return ipaddress.IPv4Address(bytes(octets))

    raise InvalidArgumentsError(f"Invalid IP address: '{text}'")


def validate_arguments(
    add_address: Optional[str], remove_address: Optional[str]
) -> tuple[Optional[Address], Optional[Address]]:
    """Check the address flags before anything is sent to Prism Central.

    Returns:
        (add, remove) parsed addresses; both None means a read-only run

    Raises:
        InvalidArgumentsError: If both are set or one does not parse
    """
    if add_address and remove_address:
        raise InvalidArgumentsError(
            "Must provide exactly one of add-address or remove-address"
        )
    add = parse_address(add_address) if add_address else None
    remove = parse_address(remove_address) if remove_address else None
    return add, remove


def subnet_network(subnet: Subnet) -> Network:
    """Return the CIDR block of a subnet, with host bits of the base masked.

    Raises:
        MalformedSubnetError: If the base address or prefix length is unusable
    """
    if subnet.subnet_ip is None or subnet.prefix_length is None:
        raise MalformedSubnetError(
            f"Subnet {subnet.name or subnet.uuid} has no IP configuration"
        )
    try:
        base = parse_address(str(subnet.subnet_ip))
        return ipaddress.ip_network((base, int(subnet.prefix_length)), strict=False)
    except (InvalidArgumentsError, TypeError, ValueError) as e:
        raise MalformedSubnetError(
            f"Subnet {subnet.name or subnet.uuid} has invalid CIDR {subnet.cidr}: {e}"
        ) from e


def contains(network: Network, address: Address) -> bool:
    return address.version == network.version and address in network


def _same_address(entry: IPAddress, address: Address) -> bool:
    try:
        return parse_address(entry.value) == address
    except InvalidArgumentsError:
        return False


def add_address(iface: NetworkInterface, address: Address) -> bool:
    """Append address as ASSIGNED unless an equal entry is already there.

    Returns:
        True if the interface was modified
    """
    if any(_same_address(entry, address) for entry in iface.addresses):
        return False
    iface.addresses.append(IPAddress(value=str(address), kind=ASSIGNED))
    return True


def remove_address(iface: NetworkInterface, address: Address) -> bool:
    """Drop every entry equal to address.

    Returns:
        True if the interface was modified
    """
    kept = [entry for entry in iface.addresses if not _same_address(entry, address)]
    if len(kept) == len(iface.addresses):
        return False
    iface.addresses = kept
    return True


def reconcile(
    vm: VirtualMachine,
    get_subnet: Callable[[str], Subnet],
    add: Optional[Address] = None,
    remove: Optional[Address] = None,
) -> ReconcileResult:
    """Apply the add/remove request to every interface whose subnet contains it.

    Subnets are fetched one at a time in interface order. With neither add
    nor remove set this only resolves and logs the attached subnets.

    Args:
        vm: VM fetched by UUID (the list payload may be incomplete)
        get_subnet: Fetches a subnet by UUID
        add: Address to add
        remove: Address to remove

    Returns:
        ReconcileResult

    Raises:
        SubnetLookupError: If a subnet fetch fails
        MalformedSubnetError: If a subnet has no usable CIDR
        NoMatchingSubnetError: If an address was requested and no subnet contains it
    """
    result = ReconcileResult()

    for index, iface in enumerate(vm.interfaces):
        logger.info(
            "VM %s (uuid %s) interface %d has MAC %s and IP addresses %s",
            vm.name,
            vm.uuid,
            index,
            iface.mac_address,
            [entry.value for entry in iface.addresses if entry.value],
        )
        if not iface.subnet_uuid:
            logger.warning("Interface %d of VM %s has no subnet reference", index, vm.name)
            result.subnets.append(None)
            continue

        try:
            subnet = get_subnet(iface.subnet_uuid)
        except PrismAPIError as e:
            raise SubnetLookupError(
                f"Cannot fetch subnet {iface.subnet_uuid} of interface {index}: {e}"
            ) from e

        network = subnet_network(subnet)
        result.subnets.append(subnet)
        logger.info("Attached subnet %s with CIDR %s", subnet.name, network)

        if add is not None and contains(network, add):
            result.matched.append(index)
            if add_address(iface, add):
                logger.info("Adding IP %s to node %s", add, vm.name)
                result.changed.append(index)
            else:
                logger.info("IP %s is already assigned to node %s", add, vm.name)

        if remove is not None and contains(network, remove):
            result.matched.append(index)
            if remove_address(iface, remove):
                logger.info("Removing IP %s from node %s", remove, vm.name)
                result.changed.append(index)
            else:
                logger.info("IP %s is not assigned to node %s", remove, vm.name)

    requested = add if add is not None else remove
    if requested is not None and not result.matched:
        raise NoMatchingSubnetError(
            f"{requested} is not inside any subnet attached to VM {vm.name}"
        )
    return result
