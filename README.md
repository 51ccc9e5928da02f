# fedkit

Building blocks for writing modules of a federated e-cash system. The package has no
dependencies outside the standard library.

- **Consensus encoding** (`fedkit.codec`, `fedkit.derive`): a compact, deterministic
  binary format. Integers are little-endian, sequences carry a `u64` length, optional
  values carry a `0`/`1` flag and enum variants carry a `u64` index.
- **Core types** (`fedkit.types`): `PeerId`, `Amount` (counted in milli-satoshi),
  `Denomination`, `TransactionId` and `OutPoint`.
- **Storage** (`fedkit.db`): the `Database` interface with typed access, the in-memory
  `MemDatabase`, and an `Accumulator` that gathers batched writes inside transactions
  that can be rolled back.
- **Module interfaces** (`fedkit.module`): `FederationModule`, `GenerateConfig`,
  `ModuleInterconnect`, API endpoints, an `Audit` balance sheet, and `FakeFed`, which
  runs several instances of a module side by side in tests.
- **Async helpers** (`fedkit.task`): `sleep`, `sleep_until`, `timeout`, `spawn` and
  `block_in_place`.

## Installation

```
pip install .
```

Add the `test` extra to get the tools the test suite uses:

```
pip install ".[test]"
```

## Encoding

Codecs live in `fedkit.codec`: `UInt` (8, 16, 32 or 64 bits), `VecOf`, `ArrayOf`,
`OptionOf`, `TupleOf`, `FixedBytes`, `UnitCodec`, `StringCodec` and the ready-made
instances `U8`, `U16`, `U32`, `U64`, `BYTES`, `STRING`, `UNIT` and `SHA256_HASH`.
Bytes that cannot be decoded raise `DecodeError`.

```python
from fedkit.codec import UInt, VecOf, OptionOf, encode_to_bytes, decode_from_bytes

codec = VecOf(UInt(8))
data = encode_to_bytes(codec, [1, 2, 3])
assert data == bytes([3, 0, 0, 0, 0, 0, 0, 0, 1, 2, 3])
assert decode_from_bytes(codec, data) == [1, 2, 3]

assert encode_to_bytes(OptionOf(UInt(64)), None) == b"\x00"
```

`fedkit.derive` builds codecs from classes. `consensus_struct(*codecs)` decorates a
dataclass and gives it a `CODEC` that encodes its fields in declaration order.
`EnumCodec(*variants)` encodes a value as the index of its class among `variants`
followed by that class's own encoding. `unzip_consensus(items, variants)` splits
`(peer, item)` pairs into lists keyed by the snake-case name of each variant class.

```python
from dataclasses import dataclass
from fedkit.codec import U32, BYTES, encode_to_bytes
from fedkit.derive import consensus_struct

@consensus_struct(BYTES, U32)
@dataclass
class Record:
    data: list
    num: int

assert encode_to_bytes(Record.CODEC, Record([1, 2, 3], 42)) == bytes(
    [3, 0, 0, 0, 0, 0, 0, 0, 1, 2, 3, 42, 0, 0, 0]
)
```

## Amounts

```python
from fedkit.types import Amount, Denomination

fee = Amount.from_sat(2)
assert fee.milli_sat == 2000
assert str(Amount.parse("1500")) == "1500 msat"
assert Amount.from_str_in("0.00000001", Denomination.BITCOIN) == Amount.from_sat(1)
assert Amount.from_msat(5).saturating_sub(Amount.from_msat(9)) == Amount.ZERO
assert Amount.sum([fee, fee]) == Amount.from_sat(4)
```

Amounts add, subtract, multiply by integers, take `%` and `//` with each other;
unparsable text raises `ParseAmountError`.

## Storage and batched writes

A key type is a consensus-encodable class with a one-byte `DB_PREFIX` and a
`VALUE_TYPE`; a prefix type also names the `KEY_TYPE` of the entries it matches.

```python
from dataclasses import dataclass
from fedkit.codec import U64
from fedkit.derive import consensus_struct
from fedkit.db.batch import Accumulator
from fedkit.db.memory import MemDatabase

@consensus_struct(U64)
@dataclass(frozen=True)
class Balance:
    msat: int

@consensus_struct(U64)
@dataclass(frozen=True)
class AccountKey:
    DB_PREFIX = 0x10
    VALUE_TYPE = Balance
    account: int

@consensus_struct()
@dataclass(frozen=True)
class AccountPrefix:
    DB_PREFIX = 0x10
    KEY_TYPE = AccountKey
    VALUE_TYPE = Balance

batch = Accumulator()
with batch.transaction() as tx:
    tx.append_insert(AccountKey(1), Balance(500))
    tx.commit()            # leaving the block without commit rolls back

db = MemDatabase()
db.apply_batch(batch)
assert db.get_value(AccountKey(1)) == Balance(500)
assert list(db.find_by_prefix(AccountPrefix())) == [(AccountKey(1), Balance(500))]
```

Transactions can nest with `subtransaction()`. `find_by_prefix` yields pairs in key
order, and `MemDatabase.dump_db()` writes every entry as hex to a stream (standard
error by default). Keys with the wrong prefix byte raise `WrongPrefixError`, empty
keys `WrongLengthError`, both subclasses of `DecodingError`.

## Modules

`fedkit.module.api` defines the abstract `FederationModule` and `GenerateConfig`,
`ApiError` (with `not_found` and `bad_request`) and the `api_endpoint(path)`
decorator, which turns `async def handler(state, params)` into an `ApiEndpoint`
whose `call` checks the JSON parameters against the annotation of `params`.

`fedkit.module.audit.Audit` collects `AuditItem`s from the database and prints a
balance sheet ending with the total.

`fedkit.module.testing.FakeFed.create(...)` builds one module per peer from configs
made by a `GenerateConfig` class, and `verify_input`, `verify_output`,
`consensus_round`, `output_outcome` and `fetch_from_all` check that all members
agree.

## What the package does not do

It has no command-line program, runs no federation server or network API, and keeps
data only in memory: `MemDatabase` is the sole storage backend. Transactions,
signatures and the concrete mint, wallet and lightning modules are not part of it.

## Running the tests

```
pytest
```