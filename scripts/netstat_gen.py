#!/usr/bin/env python3
"""
Synthetic netstat report generator for netcmp demo/testing.

Writes one `netstat -n -f inet -P tcp` style report per host into an output
directory. Hosts talk to each other over a shared subnet; a configurable
number of connections is written to only one side's report ("abandoned"),
and some connections go to peers outside the subnet ("external").

Usage::

    python3 scripts/netstat_gen.py --hosts 3 --connections 50 --abandoned 4 --out-dir demo
    netcmp demo/*.txt
"""

from __future__ import annotations

import argparse
import os
import random
import sys


STATES = ["ESTABLISHED"] * 8 + ["CLOSE_WAIT", "FIN_WAIT_2", "TIME_WAIT"]

HEADER = (
    "\n"
    "TCP: IPv4\n"
    "   Local Address        Remote Address    Swind Send-Q Rwind Recv-Q    State\n"
    "-------------------- -------------------- ----- ------ ----- ------ -----------\n"
)


def format_row(local_ip: str, local_port: int, remote_ip: str, remote_port: int, state: str) -> str:
    local = f"{local_ip}.{local_port}"
    remote = f"{remote_ip}.{remote_port}"
    return f"{local:<20} {remote:<20} {128000:>5} {0:>6} {128872:>5} {0:>6} {state}\n"


def generate(hosts: int, connections: int, abandoned: int, external: int,
             loopback: int, seed: int) -> dict[str, list[str]]:
    """Build report rows per host IP. Returns {host_ip: [row, ...]}."""
    rng = random.Random(seed)
    host_ips = [f"10.0.0.{i + 1}" for i in range(hosts)]
    rows: dict[str, list[str]] = {ip: [] for ip in host_ips}
    used_ports: set[tuple[str, int]] = set()

    def ephemeral(ip: str) -> int:
        while True:
            port = rng.randint(32768, 65535)
            if (ip, port) not in used_ports:
                used_ports.add((ip, port))
                return port

    for n in range(connections):
        client, server = rng.sample(host_ips, 2)
        client_port = ephemeral(client)
        server_port = rng.choice([22, 80, 443, 5432, 6379])
        state = rng.choice(STATES)

        rows[client].append(format_row(client, client_port, server, server_port, state))
        # The first `abandoned` connections only exist on the client side
        if n >= abandoned:
            rows[server].append(format_row(server, server_port, client, client_port, state))

    for _ in range(external):
        host = rng.choice(host_ips)
        peer = f"192.0.2.{rng.randint(1, 254)}"
        rows[host].append(format_row(host, ephemeral(host), peer, 443, "ESTABLISHED"))

    for _ in range(loopback):
        host = rng.choice(host_ips)
        port = rng.randint(32768, 65535)
        rows[host].append(format_row("127.0.0.1", port, "127.0.0.1", 8080, "ESTABLISHED"))

    for ip in host_ips:
        rng.shuffle(rows[ip])

    return rows


def main() -> int:
    ap = argparse.ArgumentParser(description="netstat report generator for netcmp")
    ap.add_argument("--hosts", type=int, default=2, help="Number of hosts (reports)")
    ap.add_argument("--connections", type=int, default=20, help="Connections between hosts")
    ap.add_argument("--abandoned", type=int, default=2, help="Connections reported by one side only")
    ap.add_argument("--external", type=int, default=2, help="Connections to hosts without a report")
    ap.add_argument("--loopback", type=int, default=1, help="Loopback connections")
    ap.add_argument("--seed", type=int, default=0, help="Random seed")
    ap.add_argument("--out-dir", default=".", help="Directory to write reports into")
    args = ap.parse_args()

    if args.hosts < 2:
        print("[netstat_gen] need at least two hosts", file=sys.stderr)
        return 2
    if args.abandoned > args.connections:
        print("[netstat_gen] --abandoned cannot exceed --connections", file=sys.stderr)
        return 2

    rows = generate(args.hosts, args.connections, args.abandoned, args.external,
                    args.loopback, args.seed)

    os.makedirs(args.out_dir, exist_ok=True)
    for i, (ip, host_rows) in enumerate(sorted(rows.items())):
        path = os.path.join(args.out_dir, f"host{i + 1}.txt")
        with open(path, "w") as f:
            f.write(HEADER)
            f.writelines(host_rows)
        print(f"[netstat_gen] {path}: {ip}, {len(host_rows)} rows")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
