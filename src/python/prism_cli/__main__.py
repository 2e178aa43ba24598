"""Entry points for prism_cli."""

from .cli import cli, list_vms_command, node_ip_command


def main() -> None:
    """Entry point for the prism CLI."""
    cli()


def list_vms_main() -> None:
    """Entry point for prism-list-vms."""
    list_vms_command()


def node_ip_main() -> None:
    """Entry point for prism-node-ip."""
    node_ip_command()


if __name__ == "__main__":
    main()
