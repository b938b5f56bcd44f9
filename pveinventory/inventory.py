import logging

from .client import MalformedRecordError, UnsupportedOperationError
from .policy import Severity, attempt, fatal, resolve
from .render import format_value, identity_of, render_attributes, render_record

logger = logging.getLogger(__name__)


def _skip(category, error):
    logger.warning(f"Skipping malformed {category} record: {error}")


def list_clusters(client, out):
    raise UnsupportedOperationError("Cluster operations are not yet supported")


def list_nodes(client, out):
    """
    Print every node with its status attributes.

    :param client: Authenticated ProxmoxClient (or anything with the same methods)
    :param out: Text stream
    """
    nodes = fatal("Failed to list nodes", client.get_node_list)
    for node in nodes:
        try:
            render_record(node, 'node', out)
        except MalformedRecordError as e:
            _skip('node', e)


def list_storages(client, out):
    """
    Print the storages of every node, grouped under the node name.

    A failing storage listing aborts the whole run, unlike the agent
    interface lookup in list_vms().

    :param client: Authenticated ProxmoxClient
    :param out: Text stream
    """
    nodes = fatal("Failed to list nodes", client.get_node_list)
    for node in nodes:
        try:
            node_name = identity_of(node, 'node')
        except MalformedRecordError as e:
            _skip('node', e)
            continue
        print(node_name, file=out)
        storages = fatal(f"Failed to fetch storages for node {node_name}", client.list_storages, node_name)
        for storage in storages:
            try:
                render_record(storage, 'storage', out, indent=1)
            except MalformedRecordError as e:
                _skip('storage', e)


def list_vms(client, out):
    """
    Print every VM with its listing status, its configuration and the
    network interfaces reported by its guest agent.

    :param client: Authenticated ProxmoxClient
    :param out: Text stream
    """
    vms = fatal("Failed to list VMs", client.get_vm_list)
    for vm in vms:
        try:
            name = identity_of(vm, 'name')
        except MalformedRecordError as e:
            _skip('VM', e)
            continue
        print(name, file=out)
        print(" Status:", file=out)
        render_attributes(vm, out, 1, exclude=('name',))

        vm_ref = fatal("Failed to get VM reference", client.get_vm_ref_by_name, name)
        vm_config = fatal("Failed to get VM config", client.get_vm_config, vm_ref)
        print(" Config:", file=out)
        render_attributes(vm_config, out, 1)

        print(" Agent network interfaces:", file=out)
        outcome = attempt("Failed to get agent network interfaces", Severity.TOLERATED,
                          client.get_vm_agent_network_interfaces, vm_ref)
        interfaces = resolve(outcome)
        if not outcome.ok:
            print(f"\tNot available: {outcome.error}", file=out)
            continue
        for interface in interfaces:
            try:
                render_record(interface, 'name', out, indent=1)
            except MalformedRecordError:
                print(f"\t{format_value(interface)}", file=out)


LISTERS = {
    'cluster': list_clusters,
    'node': list_nodes,
    'storage': list_storages,
    'vm': list_vms,
}

CATEGORY_ALIASES = {
    'c': 'cluster', 'cluster': 'cluster', 'clusters': 'cluster',
    'n': 'node', 'node': 'node', 'nodes': 'node',
    's': 'storage', 'storage': 'storage', 'storages': 'storage',
    'v': 'vm', 'vm': 'vm', 'vms': 'vm',
}
