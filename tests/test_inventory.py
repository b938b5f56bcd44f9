import io
import logging

import pytest
from unittest.mock import Mock

from pveinventory.client import ProxmoxAPIError, UnsupportedOperationError, VmRef
from pveinventory.inventory import CATEGORY_ALIASES, list_clusters, list_nodes, list_storages, list_vms
from pveinventory.policy import FatalError


def _blocks(output):
    """Split rendered output into {header: set(body lines)}."""
    blocks = {}
    current = None
    for line in output.splitlines():
        if not line.startswith('\t'):
            current = line
            blocks[current] = set()
        else:
            blocks[current].add(line.strip())
    return blocks


class TestListNodes:

    def test_two_nodes(self):
        client = Mock()
        client.get_node_list.return_value = [{'node': 'a', 'cpu': 4}, {'node': 'b', 'cpu': 2}]
        out = io.StringIO()

        list_nodes(client, out)

        blocks = _blocks(out.getvalue())
        assert list(blocks) == ['a', 'b']
        assert blocks['a'] == {'cpu: 4'}
        assert blocks['b'] == {'cpu: 2'}
        assert 'node:' not in out.getvalue()

    def test_empty_listing(self):
        client = Mock()
        client.get_node_list.return_value = []
        out = io.StringIO()

        list_nodes(client, out)

        assert out.getvalue() == ''

    def test_listing_failure_is_fatal(self):
        client = Mock()
        client.get_node_list.side_effect = ProxmoxAPIError("HTTP 403: Permission check failed")
        out = io.StringIO()

        with pytest.raises(FatalError, match="Failed to list nodes: HTTP 403"):
            list_nodes(client, out)
        assert out.getvalue() == ''

    def test_malformed_node_is_skipped(self, caplog):
        client = Mock()
        client.get_node_list.return_value = [{'cpu': 1}, {'node': 7}, {'node': 'b', 'status': 'online'}]
        out = io.StringIO()

        with caplog.at_level(logging.WARNING, logger='pveinventory.inventory'):
            list_nodes(client, out)

        assert out.getvalue() == 'b\n\tstatus: online\n'
        assert caplog.text.count('Skipping malformed node record') == 2


class TestListStorages:

    def test_storages_nested_under_nodes(self):
        client = Mock()
        client.get_node_list.return_value = [{'node': 'a'}]
        client.list_storages.return_value = [{'storage': 'local', 'type': 'dir', 'active': 1}]
        out = io.StringIO()

        list_storages(client, out)

        assert out.getvalue() == 'a\n\tlocal\n\t\tactive: 1\n\t\ttype: dir\n'
        client.list_storages.assert_called_once_with('a')

    def test_stops_at_first_failing_node(self):
        def storages(node):
            if node == 'b':
                raise ProxmoxAPIError("Request timed out")
            return [{'storage': f'{node}-local'}]

        client = Mock()
        client.get_node_list.return_value = [{'node': 'a'}, {'node': 'b'}, {'node': 'c'}]
        client.list_storages.side_effect = storages
        out = io.StringIO()

        with pytest.raises(FatalError, match="Failed to fetch storages for node b: Request timed out"):
            list_storages(client, out)

        assert out.getvalue() == 'a\n\ta-local\nb\n'
        assert [c.args for c in client.list_storages.call_args_list] == [('a',), ('b',)]


class TestListVMs:

    def test_agent_failure_is_tolerated(self):
        client = Mock()
        client.get_vm_list.return_value = [{'name': 'vm1'}]
        client.get_vm_ref_by_name.return_value = VmRef(vmid=100, node='a')
        client.get_vm_config.return_value = {'memory': 512}
        client.get_vm_agent_network_interfaces.side_effect = ProxmoxAPIError("QEMU guest agent is not running")
        out = io.StringIO()

        list_vms(client, out)

        assert out.getvalue() == (
            'vm1\n'
            ' Status:\n'
            ' Config:\n'
            '\tmemory: 512\n'
            ' Agent network interfaces:\n'
            '\tNot available: QEMU guest agent is not running\n'
        )

    def test_continues_after_agent_failure(self):
        client = Mock()
        client.get_vm_list.return_value = [{'name': 'vm1', 'vmid': 100}, {'name': 'vm2', 'vmid': 101}]
        client.get_vm_ref_by_name.side_effect = lambda name: VmRef(vmid=100 if name == 'vm1' else 101, node='a', name=name)
        client.get_vm_config.return_value = {}
        client.get_vm_agent_network_interfaces.side_effect = [
            ProxmoxAPIError("not running"),
            [{'name': 'eth0', 'hardware-address': 'aa:bb', 'ip-addresses': [{'ip-address': '10.0.0.5'}]}],
        ]
        out = io.StringIO()

        list_vms(client, out)

        output = out.getvalue()
        assert '\tNot available: not running\n' in output
        assert 'vm2\n Status:\n\tvmid: 101\n' in output
        assert '\teth0\n\t\thardware-address: aa:bb\n\t\tip-addresses: [{"ip-address":"10.0.0.5"}]\n' in output

    def test_ref_failure_is_fatal(self):
        client = Mock()
        client.get_vm_list.return_value = [{'name': 'vm1'}, {'name': 'vm2'}]
        client.get_vm_ref_by_name.side_effect = ProxmoxAPIError("VM 'vm1' not found")
        out = io.StringIO()

        with pytest.raises(FatalError, match="Failed to get VM reference"):
            list_vms(client, out)
        client.get_vm_config.assert_not_called()
        assert 'vm2' not in out.getvalue()

    def test_config_failure_is_fatal(self):
        client = Mock()
        client.get_vm_list.return_value = [{'name': 'vm1'}]
        client.get_vm_ref_by_name.return_value = VmRef(vmid=100, node='a')
        client.get_vm_config.side_effect = ProxmoxAPIError("HTTP 500: Internal Server Error")
        out = io.StringIO()

        with pytest.raises(FatalError, match="Failed to get VM config"):
            list_vms(client, out)
        client.get_vm_agent_network_interfaces.assert_not_called()

    def test_nameless_vm_is_skipped(self):
        client = Mock()
        client.get_vm_list.return_value = [{'vmid': 100}]
        out = io.StringIO()

        list_vms(client, out)

        assert out.getvalue() == ''
        client.get_vm_ref_by_name.assert_not_called()


class TestListClusters:

    def test_unsupported(self):
        client = Mock()

        with pytest.raises(UnsupportedOperationError, match="not yet supported"):
            list_clusters(client, io.StringIO())
        assert client.method_calls == []


def test_category_aliases():
    assert {CATEGORY_ALIASES[k] for k in ('c', 'cluster', 'clusters')} == {'cluster'}
    assert {CATEGORY_ALIASES[k] for k in ('n', 'node', 'nodes')} == {'node'}
    assert {CATEGORY_ALIASES[k] for k in ('s', 'storage')} == {'storage'}
    assert {CATEGORY_ALIASES[k] for k in ('v', 'vm', 'vms')} == {'vm'}
