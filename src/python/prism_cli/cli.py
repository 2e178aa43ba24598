"""Click CLI commands for prism_cli."""

import json
import logging
import sys
from pathlib import Path

import click

from .credentials import DEFAULT_CONFIG_DIR, CredentialsError, load_config
from .locator import AmbiguousVMError, VMNotFoundError
from .prism_client import ClientConstructionError, PrismAPIError, PrismClient
from .reconciler import (
    InvalidArgumentsError,
    MalformedSubnetError,
    NoMatchingSubnetError,
    SubnetLookupError,
    validate_arguments,
)
from .updater import UpdateRejectedError, list_inventory, update_node_addresses


def config_options(f):
    """Add --version, --config-dir and --verbose to a command."""
    f = click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")(f)
    f = click.option(
        "--config-dir",
        type=click.Path(file_okay=False, path_type=Path),
        default=DEFAULT_CONFIG_DIR,
        envvar="PRISM_CONFIG_DIR",
        show_default=True,
        help="Directory with secret.conf, endpoint.conf and settings.yaml",
    )(f)
    return click.version_option(version="0.1.0")(f)


def _setup(ctx: click.Context, config_dir: Path, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_dir"] = config_dir


@click.group()
@config_options
@click.pass_context
def cli(ctx: click.Context, config_dir: Path, verbose: bool) -> None:
    """Inspect and edit VM addresses through Nutanix Prism Central."""
    _setup(ctx, config_dir, verbose)


def _connect(ctx: click.Context) -> PrismClient:
    """Load the config and build a client, exiting on failure."""
    try:
        return PrismClient(load_config(ctx.obj["config_dir"]))
    except CredentialsError as e:
        click.echo(f"Credentials error: {e}", err=True)
        sys.exit(1)
    except ClientConstructionError as e:
        click.echo(f"Client error: {e}", err=True)
        sys.exit(1)


def _report_api_error(e: Exception, transient: bool) -> None:
    click.echo(f"Error: {e}", err=True)
    if transient:
        click.echo("This looks transient, running the command again may succeed.", err=True)


@cli.command("list-vms")
@click.option("--json", "as_json", is_flag=True, help="Print the raw VM entities")
@click.pass_context
def list_vms(ctx: click.Context, as_json: bool) -> None:
    """List all VMs with their interfaces and addresses."""
    client = _connect(ctx)

    try:
        if as_json:
            click.echo(json.dumps(client.list_vm_entities(), indent=4))
            return
        vms = list_inventory(client)
    except PrismAPIError as e:
        _report_api_error(e, e.transient)
        sys.exit(1)

    if not vms:
        click.echo("No VMs found.")
        return

    for vm in vms:
        click.echo(f"{vm.name}  {vm.uuid}")
        for index, iface in enumerate(vm.interfaces):
            ips = ", ".join(entry.value for entry in iface.addresses if entry.value) or "-"
            click.echo(f"  nic{index}  {iface.mac_address or '-'}  {ips}")


@cli.command("node-ip")
@click.option("--node-name", required=True, help="Name of the node to update")
@click.option("--add-address", default="", help="Add this IP address")
@click.option("--remove-address", default="", help="Remove this IP address")
@click.option("--vm-uuid", default=None, help="UUID of the VM when several share the name")
@click.option("--dry-run", is_flag=True, help="Show the change without submitting it")
@click.pass_context
def node_ip(
    ctx: click.Context,
    node_name: str,
    add_address: str,
    remove_address: str,
    vm_uuid: str | None,
    dry_run: bool,
) -> None:
    """Add or remove an IP address on a node's interface.

    The address goes to every interface whose subnet contains it. Without
    --add-address or --remove-address, only report the node's interfaces.
    """
    if not node_name:
        click.echo("Error: Provide a node name", err=True)
        sys.exit(1)

    try:
        validate_arguments(add_address, remove_address)
    except InvalidArgumentsError as e:
        click.echo(f"Invalid arguments: {e}", err=True)
        sys.exit(1)

    client = _connect(ctx)

    try:
        outcome = update_node_addresses(
            client,
            node_name,
            add_address=add_address or None,
            remove_address=remove_address or None,
            vm_uuid=vm_uuid,
            dry_run=dry_run,
        )
    except (VMNotFoundError, AmbiguousVMError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except (SubnetLookupError, MalformedSubnetError) as e:
        click.echo(f"Subnet error: {e}", err=True)
        sys.exit(1)
    except NoMatchingSubnetError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except (UpdateRejectedError, PrismAPIError) as e:
        _report_api_error(e, e.transient)
        sys.exit(1)

    _print_interfaces(outcome)

    if outcome.submitted:
        click.echo("\nUpdate result:")
        click.echo(json.dumps(outcome.response, indent=4))
    elif outcome.intent is not None:
        click.echo("\nDry run, the following nic_list would be submitted:")
        click.echo(json.dumps(outcome.intent["spec"]["resources"]["nic_list"], indent=4))
    elif add_address or remove_address:
        click.echo("\nNo changes needed.")


def _print_interfaces(outcome) -> None:
    """Print the node's interfaces with their subnets."""
    vm = outcome.vm
    click.echo(f"{vm.name}  {vm.uuid}")
    for index, iface in enumerate(vm.interfaces):
        subnet = outcome.reconcile.subnets[index]
        subnet_text = f"{subnet.name} ({subnet.cidr})" if subnet else "-"
        ips = ", ".join(entry.value for entry in iface.addresses if entry.value) or "-"
        marker = " *" if index in outcome.reconcile.changed else ""
        click.echo(f"  nic{index}  {iface.mac_address or '-'}  {subnet_text}  {ips}{marker}")


def standalone(command: click.Command, name: str) -> click.Command:
    """Build a top-level command running command with the group's options."""

    @click.command(name, params=list(command.params), help=command.help)
    @config_options
    @click.pass_context
    def run(ctx: click.Context, config_dir: Path, verbose: bool, **kwargs) -> None:
        _setup(ctx, config_dir, verbose)
        ctx.invoke(command, **kwargs)

    return run


list_vms_command = standalone(list_vms, "prism-list-vms")
node_ip_command = standalone(node_ip, "prism-node-ip")
