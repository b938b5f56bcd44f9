import logging
import warnings
from typing import Dict, List, Optional, Any

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from urllib3.exceptions import InsecureRequestWarning

logger = logging.getLogger(__name__)

# Per-request budget handed to requests, in seconds
DEFAULT_TIMEOUT = 10


class ProxmoxError(Exception):
    pass

class ProxmoxAuthError(ProxmoxError):
    pass

class ProxmoxAPIError(ProxmoxError):
    pass

class UnsupportedOperationError(ProxmoxError):
    pass

class MalformedRecordError(ProxmoxError):
    pass


class LoginTicket(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ticket: str
    csrf_token: Optional[str] = Field(default=None, alias='CSRFPreventionToken')
    username: Optional[str] = None
    need_tfa: bool = Field(default=False, alias='NeedTFA')


class VmRef(BaseModel):
    vmid: int
    node: str
    vm_type: str = 'qemu'
    name: Optional[str] = None

    @property
    def path(self):
        return f'/nodes/{self.node}/{self.vm_type}/{self.vmid}'


def normalize_principal(username, realm):
    """Qualify a bare username with a realm; an embedded realm always wins."""
    if '@' in username:
        return username
    return f'{username}@{realm}'


class ProxmoxClient:
    def __init__(self, server_url, verify_ssl=True, timeout=DEFAULT_TIMEOUT):
        """
        Initialize an unauthenticated Proxmox VE API client.

        :param server_url: API base URL (e.g., 'https://pve.example.com:8006/api2/json')
        :param verify_ssl: Whether to verify SSL certificates
        :param timeout: Request timeout in seconds
        """
        self.server_url = server_url.rstrip('/')
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self.principal = None
        self.csrf_token = None
        self.session = requests.Session()
        if not verify_ssl:
            logger.warning(f"TLS certificate verification is disabled for {self.server_url}; avoid this whenever possible")
            warnings.filterwarnings('ignore', category=InsecureRequestWarning)

    def _request(self, method, path, params=None, data=None):
        """
        Perform a request against the API and unwrap the 'data' envelope.

        :param method: HTTP method
        :param path: API path (e.g., '/nodes')
        :param params: Optional query parameters
        :param data: Optional form data
        :return: Decoded 'data' member of the response
        """
        url = f"{self.server_url}{path}"
        try:
            resp = self.session.request(method, url, params=params, data=data, verify=self.verify_ssl, timeout=self.timeout)
            resp.raise_for_status()
        except requests.exceptions.Timeout:
            raise ProxmoxAPIError("Request timed out")
        except requests.exceptions.SSLError:
            raise ProxmoxAPIError("SSL verification failed")
        except requests.exceptions.HTTPError as e:
            raise ProxmoxAPIError(f"HTTP {e.response.status_code}: {e.response.reason}")
        except requests.exceptions.RequestException as e:
            raise ProxmoxAPIError(f"Request failed: {e}")
        try:
            body = resp.json()
        except ValueError as e:
            raise ProxmoxAPIError(f"Invalid JSON response from {path}: {e}")
        if not isinstance(body, dict) or 'data' not in body:
            raise ProxmoxAPIError(f"Unexpected response from {path}: missing 'data'")
        return body['data']

    def _get(self, path, params=None):
        return self._request('GET', path, params=params)

    def _post(self, path, data=None):
        return self._request('POST', path, data=data)

    def _get_list(self, path, params=None) -> List[Dict[str, Any]]:
        data = self._get(path, params)
        if data is None:
            return []
        if not isinstance(data, list):
            raise ProxmoxAPIError(f"Unexpected response from {path}: expected a list, got {type(data).__name__}")
        return data

    def _ticket(self, form):
        data = self._post('/access/ticket', form)
        try:
            return LoginTicket.model_validate(data)
        except ValidationError as e:
            raise ProxmoxAuthError(f"Malformed ticket response: {e}")

    def login(self, principal, password, otp=''):
        """
        Authenticate with ticket auth and keep the ticket on the session.

        :param principal: Realm-qualified user (e.g., 'root@pam')
        :param password: Password
        :param otp: Optional one-time passcode for two-factor realms
        :return: None
        """
        try:
            form = {'username': principal, 'password': password}
            if otp:
                form['otp'] = otp
            ticket = self._ticket(form)
            if ticket.need_tfa:
                if not otp:
                    raise ProxmoxAuthError("two-factor authentication required, pass a one-time passcode")
                logger.debug(f"Answering TOTP challenge for {principal}")
                ticket = self._ticket({
                    'username': principal,
                    'tfa-challenge': ticket.ticket,
                    'password': f'totp:{otp}',
                })
        except ProxmoxAuthError:
            raise
        except ProxmoxError as e:
            raise ProxmoxAuthError(f"Authentication failed: {e}")

        self.session.cookies.set('PVEAuthCookie', ticket.ticket)
        if ticket.csrf_token:
            self.session.headers.update({'CSRFPreventionToken': ticket.csrf_token})
        self.csrf_token = ticket.csrf_token
        self.principal = ticket.username or principal
        logger.info("Authentication successful")

    def get_node_list(self):
        """
        List cluster nodes.

        :return: List of node dictionaries
        """
        try:
            nodes = self._get_list('/nodes')
            logger.info(f"Retrieved {len(nodes)} nodes")
            return nodes
        except ProxmoxAPIError as e:
            logger.debug(f"Failed to list nodes: {e}")
            raise

    def list_storages(self, node):
        """
        List storages visible from a node.

        :param node: Node name
        :return: List of storage dictionaries
        """
        try:
            storages = self._get_list(f'/nodes/{node}/storage')
            logger.info(f"Retrieved {len(storages)} storages on node {node}")
            return storages
        except ProxmoxAPIError as e:
            logger.debug(f"Failed to list storages for node {node}: {e}")
            raise

    def get_vm_list(self):
        """
        List all VMs and containers in the cluster.

        :return: List of VM dictionaries
        """
        try:
            vms = self._get_list('/cluster/resources', {'type': 'vm'})
            logger.info(f"Retrieved {len(vms)} VMs")
            return vms
        except ProxmoxAPIError as e:
            logger.debug(f"Failed to list VMs: {e}")
            raise

    def get_vm_ref_by_name(self, name):
        """
        Resolve a VM name to its node, type and VMID.

        :param name: VM name
        :return: VmRef
        """
        matches = [vm for vm in self._get_list('/cluster/resources', {'type': 'vm'}) if vm.get('name') == name]
        if not matches:
            raise ProxmoxAPIError(f"VM '{name}' not found")
        if len(matches) > 1:
            vmids = ', '.join(str(vm.get('vmid')) for vm in matches)
            raise ProxmoxAPIError(f"VM name '{name}' is ambiguous (vmids {vmids})")
        vm = matches[0]
        try:
            return VmRef(vmid=vm['vmid'], node=vm['node'], vm_type=vm.get('type', 'qemu'), name=name)
        except (KeyError, ValidationError) as e:
            raise ProxmoxAPIError(f"Incomplete resource entry for VM '{name}': {e}")

    def get_vm_config(self, ref):
        """
        Get VM configuration.

        :param ref: VmRef
        :return: Config dictionary
        """
        config = self._get(f'{ref.path}/config')
        if not isinstance(config, dict):
            raise ProxmoxAPIError(f"Unexpected config for VM {ref.vmid}: expected an object")
        logger.debug(f"Retrieved config for VM {ref.vmid}")
        return config

    def get_vm_agent_network_interfaces(self, ref):
        """
        Get network interfaces reported by the QEMU guest agent.

        :param ref: VmRef
        :return: List of interface dictionaries
        """
        data = self._get(f'{ref.path}/agent/network-get-interfaces')
        interfaces = data.get('result') if isinstance(data, dict) else None
        if not isinstance(interfaces, list):
            raise ProxmoxAPIError(f"Unexpected agent response for VM {ref.vmid}")
        return interfaces


def establish_session(server_url, skip_tls_verify, principal, password, otp='', timeout=DEFAULT_TIMEOUT):
    """
    Build the transport and log in.

    :param server_url: API base URL
    :param skip_tls_verify: Disable certificate validation (unsafe)
    :param principal: Realm-qualified user
    :param password: Password
    :param otp: Optional one-time passcode
    :param timeout: Request timeout in seconds
    :return: Authenticated ProxmoxClient
    """
    client = ProxmoxClient(server_url, verify_ssl=not skip_tls_verify, timeout=timeout)
    client.login(principal, password, otp)
    return client
