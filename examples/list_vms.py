#!/usr/bin/env python3
"""
Example script to print a one-line summary per VM and container.

Usage: python list_vms.py <server_url> <username> <password>
"""

import sys

from pveinventory import ProxmoxError, establish_session, normalize_principal

def main():
    if len(sys.argv) != 4:
        print("Usage: python list_vms.py <server_url> <username> <password>")
        sys.exit(1)

    server_url, username, password = sys.argv[1:]

    try:
        client = establish_session(server_url, False, normalize_principal(username, 'pam'), password)
        vms = client.get_vm_list()

        print("VMs and LXCs in cluster:")
        print("-" * 50)
        for vm in vms:
            print(f"ID: {vm.get('vmid')}, Name: {vm.get('name', 'N/A')}, Node: {vm.get('node')}, Status: {vm.get('status')}, Type: {vm.get('type')}")

    except ProxmoxError as e:
        print(f"Error: {e}")
        sys.exit(1)

if __name__ == "__main__":
    main()
