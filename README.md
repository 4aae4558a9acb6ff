# microperf

microperf is a library of building blocks for network benchmarks. A benchmark
is described as a *workorder*: a set of groups of strands, each group running
a list of transactions, each transaction made of flowops (connect, accept,
read, write, disconnect, sendfile and so on). The package models that
description, provides the transports and synchronisation a run needs, keeps
the timing statistics and formats the results as text.

It uses only the standard library.

## Modules

- `microperf.workorder`: `Workorder`, `Group`, `Transaction`, `Flowop`,
  `FlowopOptions` and the `FlowopType` enum. A workorder counts its strands
  (`num_strands`, `num_strands_bytype`), statistics slots (`num_stats`),
  transactions (`max_txn`) and connections (`num_connections`). A group can be
  cloned (`Group.clone`), turned into its peer-side counterpart with a
  function that maps each flowop type to its opposite (`Group.opposite`), and
  byte-swapped for a peer of the other endianness (`Group.bitswap`, built on
  `bswap16`, `bswap32` and `bswap64`).
- `microperf.sync`: a `Barrier` that strands arrive at with `wait()` and that
  stays closed until `unlock()` is called; `not_reached()` tells how many
  strands have yet to arrive.
- `microperf.stats`: `NewStats` records with `begin`, `end` and `add`;
  `stats_update` applies flowop, transaction and group events according to a
  `StatsOptions`; `History` buffers `HistoryEntry` samples and writes them to
  a stream when full or on `flush()`.
- `microperf.rate`: `rate_execute_1s` and `rate_execute_1s_busywait` call a
  no-argument callback about `rate` times spread over one second, the first
  sleeping between bursts, the second spinning. A non-zero return from the
  callback stops the run and is returned.
- `microperf.shm`: `SharedState`, the state shared by the strands of a run:
  per-transaction barriers (`init_barriers_master`, `init_barriers_slave`,
  `get_barrier`), timed callouts (`callout_register`, `process_callouts` with
  an optional function that signals a group), the global error count
  (`flag_error`), finished strands (`update_strand_exit`) and statistics
  records (`new_stats`, `update_aggr_stat`). Failures raise `ShmError`.
- `microperf.protocol`: the `Protocol` base class, the `ProtocolType` enum,
  `protocol_to_str` and `ProtocolError`.
- `microperf.tcp`, `microperf.udp`, `microperf.vsock`, `microperf.tls`:
  `TcpProtocol`, `UdpProtocol`, `VsockProtocol` and `TlsProtocol`, created with
  `create_tcp`, `create_udp`, `create_vsock` and `create_tls`. UDP serves every
  logical connection over one socket after a one-datagram handshake; its
  `close()` only closes the socket once the connection count has dropped low
  enough and returns whether it did.
- `microperf.registry`: `protocol_type` (case-insensitive name lookup),
  `valid_protocol`, `create_protocol` and `destroy_protocol` for the
  transports available here: tcp, udp, ssl, and vsock where the operating
  system provides it.
- `microperf.strand`: a `Strand` with its connection pool and eight-slot
  connection cache, the ports of the peers it talks to (`SlaveInfo`,
  `add_slave`, `get_port`), and `init_group` to create a group's strands.
- `microperf.sendfile`: `SendfileRegistry` opens every regular file under a
  directory once (`init`) and sends randomly chosen files over a socket with
  `os.sendfile`, whole or in chunks (`send`, `sendv`).
- `microperf.report`: functions that return report text: `format_number`,
  `format_bits`, `format_time`, `uperf_line`, `format_summary`,
  `format_average`, `format_txn_averages`, `format_flowop_averages`,
  `format_group_details`, `format_strand_details`, `format_goodbye_header`,
  `format_goodbye_stat` and `format_difference`, with `GoodbyeStat` holding a
  peer's totals.

## Examples

Describing a workload:

```python
from microperf.workorder import (
    Flowop, FlowopOptions, FlowopType, Group, Transaction, Workorder,
)

txn = Transaction(txnid=0, iter=10, flowops=[
    Flowop(FlowopType.CONNECT),
    Flowop(FlowopType.WRITE, FlowopOptions(size=1024)),
    Flowop(FlowopType.DISCONNECT),
])
group = Group(name="g0", nthreads=4, transactions=[txn])
work = Workorder(name="demo", groups=[group])

work.num_strands()            # 4
work.num_stats()              # 5
group.max_open_connections()  # 1
group.max_dto_size()          # 8192, the default buffer size
```

Creating a transport:

```python
from microperf.protocol import protocol_to_str
from microperf.registry import create_protocol, protocol_type

ptype = protocol_type("TCP")          # names are matched case-insensitively
print(protocol_to_str(ptype))         # "TCP"

server = create_protocol(ptype, "", 0)
port = server.listen(None)            # port 0 picks a free port
```

Reports are plain strings:

```python
from microperf.report import format_bits, format_number, format_time

print(format_number(41.73 * 2**30, 8))   # a byte count with a unit
print(format_bits(12.19e9, 12))          # a bit rate with a unit
print(format_time(51_840, 11))           # a duration given in nanoseconds
```

## TLS keys

`TlsProtocol` loads a PEM file holding both the certificate chain and the
private key, looked up by `find_key_file` in the current directory or its
parent: the connecting side uses `server.pem`, the accepting side
`client.pem`. The key is unlocked with the passphrase in
`microperf.tls.PASSWORD`. Peers are not verified. A ready context can also be
built with `initialize_context` and passed to `TlsProtocol(context=...)`.

## What this package does not do

microperf is a library, not a complete benchmark tool. It has no command to
run, no parser for workload profiles, no controller that spreads a workorder
over remote hosts, no peer handshake or wire protocol for exchanging
workorders and results, and no flowop execution loop that drives strands
through their transactions. There are no SCTP or RDS transports. Those parts
have to be supplied by the program that uses the package.