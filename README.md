# rdbkit

Pure-Python tools for working with the contents of Redis RDB snapshots.
The package has no third-party dependencies.

What it offers:

- **`rdbkit.model`**: the decoded Redis objects (`StringObject`, `ListObject`,
  `HashObject`, `SetObject`, `ZSetObject`, `StreamObject`, `AuxObject`,
  `DBSizeObject`, `ModuleTypeObject`) and the encoding details that go with
  them (`QuicklistDetail`, `Quicklist2Detail`, `IntsetDetail`,
  `ZiplistDetail`, `ListpackDetail`). Every object converts to a plain
  dictionary with `to_dict()` and to compact JSON with `to_json()`; binary
  values are decoded as UTF-8 (invalid bytes replaced) and hash fields are
  written in sorted order.
- **`rdbkit.crc64`**: the CRC-64 "Jones" checksum that Redis uses for RDB
  files.
- **`rdbkit.lzf`**: LZF compression and decompression, the algorithm Redis
  uses for compressed strings.
- **`rdbkit.memprofiler`**: an estimate of how much memory an object takes
  inside a running Redis server, based on jemalloc size classes.
- **`rdbkit.filters`**: decoder wrappers that pass objects on only if their
  key matches a regex, they are not yet expired, or they expire within a
  time range.
- **`rdbkit.resp`**: turns objects into Redis commands (`SET`, `RPUSH`,
  `SADD`, `HMSET`, `ZADD`, `XADD`, `PEXPIREAT`) encoded as RESP, suitable for
  an append-only file.
- **`rdbkit.radix`** and **`rdbkit.toplist`**: a prefix tree that adds up
  sizes and key counts per prefix, and a bounded list of the largest items.
- **`rdbkit.flamegraph`** and **`rdbkit.flameweb`**: group keys by their
  separators into a tree and serve it over HTTP for a flame graph page.

## What the package does not do

It does not read or write the binary RDB format itself. There is no RDB
decoder, no RDB encoder and no command-line tool. The functions here work on
objects from `rdbkit.model` that you build or obtain yourself, or on any
"decoder" object you supply (see below).

## Checksums and compression

```python
from rdbkit.crc64 import Crc64Jones, checksum
from rdbkit.lzf import compress, decompress

assert checksum(b"123456789") == 0xE9C6D914C4B8D9CA

crc = Crc64Jones()
crc.update(b"1234")
crc.update(b"56789")
assert crc.sum64() == 0xE9C6D914C4B8D9CA
assert crc.digest() == (0xE9C6D914C4B8D9CA).to_bytes(8, "little")

data = b"abc" * 100
packed = compress(data)
assert decompress(packed, len(data)) == data
```

`compress` raises `InsufficientBufferError` when the data would not get
shorter. Corrupt or truncated input to `decompress` raises
`DataCorruptionError`, and an output size that is too small raises
`InsufficientBufferError`. Both derive from `LzfError`, itself a
`ValueError`.

## Filtering decoded objects

Any object with a `parse(callback)` method that calls `callback(obj)` for each
Redis object, and stops when the callback returns `False`, counts as a
decoder. `wrap_decoder` wraps it in the filters that the given options ask
for; options of other kinds are ignored.

```python
from rdbkit.filters import (
    wrap_decoder,
    with_regex_option,
    with_no_expired_option,
    with_expiration_option,
)

filtered = wrap_decoder(
    decoder,
    with_regex_option(r"^user:.*"),
    with_no_expired_option(),
)
filtered.parse(lambda obj: print(obj.key) or True)
```

The regex is searched for anywhere in the key. An expiration option is
either `"noexpire"` (only keys without a TTL), `"anyexpire"` (only keys with
a TTL), or a range `"begin~end"` of Unix timestamps in seconds, inclusive,
where either end may be `now` or `inf`. An invalid regex (including
backreferences and lookarounds) or an invalid range raises `ValueError`.
`parse_expire_expr` parses such a range on its own.

## Memory estimation

```python
from rdbkit.memprofiler import size_of_object, size_of_string

estimated_bytes = size_of_object(obj)
assert size_of_string("12345") == 0   # integers are shared
```

`get_jemalloc_size`, `next_power` and `zset_random_level` are available as
well.

## Exporting as Redis commands

```python
from rdbkit.resp import LexOrder, object_to_cmd, cmd_lines_to_resp, write_object_to_resp

commands = object_to_cmd(obj, LexOrder())   # hash fields in lexical order
payload = cmd_lines_to_resp(commands)        # bytes in RESP format

with open("dump.aof", "wb") as out:
    write_object_to_resp(out, obj)
```

An object with an expiration gets a trailing `PEXPIREAT` command in
milliseconds. Stream objects produce one `XADD` per message.

## Prefix totals and largest items

```python
from rdbkit.radix import RadixTree, gen_key, parse_node_key
from rdbkit.toplist import TopList

tree = RadixTree()
tree.insert(gen_key(0, "user:1"), 120)
tree.insert(gen_key(0, "user:2"), 80)
for node, depth in tree.walk():
    print(depth, parse_node_key(node.fullpath), node.total_size, node.key_count)

top = TopList(2)            # items are ranked by their .size attribute
for obj in objects:
    top.add(obj)
print([o.key for o in top])
```

## Flame graphs of key prefixes

```python
from rdbkit.flamegraph import build_flame_tree, flame_graph

root = build_flame_tree(objects, [":"])
print(root.to_json())

server = flame_graph(objects, 16379, [":"])
# page at http://localhost:16379/flamegraph, data at /stacks.json
server.stop()
```

`objects` may be an iterable of model objects or a decoder with a `parse`
method. Keys are split on the first separator, and any further separators
are treated as equal to it; each path starts with a `db:<index>` frame.
Passing `0` as the second argument listens on 16379. With 1000 keys or more,
small leaves (under 1 MiB) are folded into an `others` frame.

The page relies on the D3, d3-flame-graph, d3-tip and Bootstrap assets, which
are not shipped with the package. `flame_graph` and `web` serve the page with
those slots empty; to fill them, start a `FlameServer(data, 16379, assets)`
with a mapping whose keys are listed in `rdbkit.flameweb.ASSET_NAMES`, or
render the page yourself with `render_page(assets)`. `FlameServer` can also
be used as a context manager.