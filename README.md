# smallwares

A handful of small, self-contained programs bundled as one Python package:
three tiny HTTP services (a hash-chained blockchain, a key-value store and a
content-addressed object store), an SMTP session state machine, an untrained
toy transformer that generates characters, and a GPT-2 Small inference
runner.

Each HTTP service handles one connection and one request at a time and keeps
all of its state in memory. Nothing is written to disk.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Commands

### `smallwares-blockchain`

An HTTP service (port 7878 unless `--port` says otherwise) that keeps a chain
of up to 64 blocks, each linked to the one before by a 64-bit FNV-1a hash.
The chain starts with a genesis block.

| Request        | Result                                                     |
|----------------|------------------------------------------------------------|
| `GET /`        | number of blocks and the latest hash                       |
| `GET /chain`   | every block with its hash, previous hash and data          |
| `POST /block`  | appends a block holding the request body (up to 256 bytes) |

A full chain answers `507 Insufficient Storage`; any other request gets
`404 Not Found`.

```
smallwares-blockchain --port 7878
curl -X POST --data 'hello' http://localhost:7878/block
curl http://localhost:7878/chain
```

### `smallwares-kv`

An HTTP key-value store (port 7879 unless `--port` says otherwise). Keys are
1 to 64 bytes, values up to 256 bytes. The store is sized for 256 entries and
fills to three quarters of that, 192 entries; once it holds 192, every `PUT`
answers `507 Insufficient Storage`, updates of existing keys included.

| Request             | Result                        |
|---------------------|-------------------------------|
| `GET /stats`        | entry count and capacity      |
| `GET /key/<key>`    | the stored value              |
| `PUT /key/<key>`    | stores the request body       |
| `DELETE /key/<key>` | removes the key               |

```
smallwares-kv
curl -X PUT --data 'world' http://localhost:7879/key/hello
curl http://localhost:7879/key/hello
```

### `smallwares-objstore`

A content-addressed object store (port 7880 unless `--port` says otherwise).
Objects of up to 4096 bytes are identified by the 16-digit hexadecimal
FNV-1a hash of their contents; storing the same content twice reports
`exists` with the existing id. It holds up to 64 objects.

| Request             | Result                                   |
|---------------------|------------------------------------------|
| `GET /stats`        | object count, total bytes and capacity   |
| `PUT /obj`          | stores the body and reports its id       |
| `GET /obj/<id>`     | the object's bytes                       |
| `DELETE /obj/<id>`  | removes the object                       |

An id that is not exactly 16 hex digits answers `400 Bad Request`.

### `smallwares-transformer`

A one-layer, single-head character transformer over printable ASCII with
weights drawn from a fixed-seed xorshift generator. It is untrained, so its
output is gibberish by design; it shows the shape of greedy autoregressive
generation over a 32-character window.

```
smallwares-transformer [prompt] [num_chars]
```

The prompt defaults to `"hello "` and the character count to 64.

### `smallwares-gpt2`

Runs GPT-2 Small (12 layers, 12 heads, 768 dimensions, 50257-token
vocabulary) from a binary weights file and a binary tokenizer file.

```
smallwares-gpt2 <weights.bin> <tokenizer.bin> [prompt] [n_tokens] [temperature]
```

`n_tokens` defaults to 128 and `temperature` to 0.8. A temperature below
0.01 picks the most likely token each step; otherwise the next token is
sampled from the top 40 candidates with a fixed-seed generator, so runs are
repeatable. Without a prompt, generation starts from token 50256.

The weights file is a 16-byte header whose first four bytes hold the
little-endian value `0x47505432`, followed by little-endian float32 arrays:
token embeddings, position embeddings, the twelve blocks' parameters and the
final layer norm. The tokenizer file starts with three little-endian 32-bit
values (magic `0x544F4B4E`, vocabulary size, merge count), then each token as
a 16-bit length and its bytes, then the merges as triples of 32-bit ids.

## Library use

The pieces behind the commands can be used directly:

```python
from smallwares.kv import KvStore
from smallwares.objstore import ObjectStore
from smallwares.fnv import fnv1a_64, format_hex64

store = KvStore()
store.put(b"greeting", b"hello")
print(store.get(b"greeting"))

objects = ObjectStore()
object_id, is_new = objects.put(b"some bytes")
print(format_hex64(object_id), is_new, objects.total_bytes())

print(format_hex64(fnv1a_64(b"hello")))
```

`smallwares.httpcore.HttpServer` takes a callable that maps a `Request` to a
`Response`; `BlockchainApp`, `KvApp` and `ObjStoreApp` each provide one as
their `respond` method.

`smallwares.smtp_session.SmtpSession` implements the SMTP dialogue
(`EHLO`/`HELO`, `MAIL FROM:`, `RCPT TO:`, `DATA`, `RSET`, `NOOP`, `QUIT`,
messages up to 10240 bytes) without doing any I/O: `greeting()` returns the
banner, `feed(data)` takes the client's bytes and returns the replies, and
accepted messages collect in `received` as `ReceivedMessage` records.

```python
from smallwares.smtp_session import SmtpSession

session = SmtpSession()
session.feed(b"EHLO client\r\nMAIL FROM:<alice@example.com>\r\n")
session.feed(b"RCPT TO:<bob@example.com>\r\nDATA\r\n")
session.feed(b"Hello\r\n.\r\n")
print(session.received)
```

## What the package does not do

There is no SMTP server command: nothing listens on a socket for mail. The
SMTP support is the session state machine above, which a caller has to
connect to a socket of its own.