# semlakit

Tools for distributing model libraries in encrypted form, and the building
blocks of a line-based licensing protocol spoken over TLS.

## What it does

- **Library encryption.** Files are encrypted with AES-256 in CBC mode
  (PKCS#7 padding) and authenticated with HMAC-SHA-256 over the IV and the
  cleartext. An encrypted file holds the IV, the ciphertext and the MAC, in
  that order. Encrypting a `package.mo` file generates a random 32-byte key
  mask for its directory and stores it, encrypted, after the file's data.
  Other files are encrypted with the base key XOR-ed with the mask of their
  directory; a directory without its own `package.mo` inherits its parent's
  mask. A `package.mo` must therefore be encrypted before the other files
  of its directory, or encryption fails with `EncryptionError`.
- **Decryption.** When decrypting a file, the masks are found by reading
  and decrypting the `package.moc` files of its directory and of its parent
  directories below the library's base directory; masks are cached in the
  context. The mask stored in a `package.moc` is not part of the cleartext
  returned for it.
- **Protocol.** A command table and parser for a small line-based protocol
  (`NOTSIMPLE`, `TOOLS`, `YES`, `VERSION`, `FEATURE`, `FILE`, `FILECONT`,
  `LIB`, `LICENSE`, `NO`, `RETURNFEATURE`, `RETURNLICENSE`, `TOOLLIST`,
  `ERROR`). A message is a command with zero, one or two integer arguments
  on its first line, followed, for commands that take a length, by that
  many bytes of data.
- **Secure channel.** Loading an RSA private key from PEM, exporting its
  public key, building a self-signed certificate and a client or server
  `ssl.SSLContext`, and writing and reading whole messages on a TLS
  connection.
- **Licensing.** A license object with feature checkout and checkin.

## Installation

```
pip install semlakit
```

## Command line

Both commands need the 32-byte base key. Give it with
`--key-file <key file>` (the file holds either 32 raw bytes or the key as
64 hexadecimal digits), or set the environment variable `SEMLAKIT_KEY` to
the key in hexadecimal. A key can be made with:

```
python -c "from semlakit.decrypt import generate_key; print(generate_key().hex())" > lib.key
```

### Encrypting

```
semlakit-encrypt [--key-file <key file>] <cleartext file> <encrypted file> [<basedirdest>]
```

- With `<basedirdest>`, the output is written to
  `<basedirdest>/<encrypted file>`, and the file is encrypted under the
  name `<encrypted file>` without its last character (so `Sub/Model.moc`
  is encrypted as `Sub/Model.mo`). The masks of the parent directories are
  first read from the `package.moc` files already in `<basedirdest>`.
- Without `<basedirdest>`, a trailing `c` is dropped from
  `<encrypted file>`; the result is both the path written to and, without
  its directory part, the name the file is encrypted under.

Exit status: 0 on success; 1 for wrong arguments, a missing or bad key, an
unreadable cleartext file or a failed encryption; 2 when the parent masks
cannot be read or the output file cannot be opened. A failed output file is
removed.

### Decrypting

```
semlakit-decrypt [--key-file <key file>] <encrypted basedir> <encrypted file> <cleartext file>
```

Reads `<encrypted basedir>/<encrypted file>` (at most 10 MiB), decrypts it
and writes the cleartext. Exit status is 0 on success and 1 on failure, in
which case the cleartext file is removed.

`semlakit encrypt ...` and `semlakit decrypt ...` run the same two
commands. While they run, debug messages about key masks are written to
standard error.

## Library use

- `semlakit.errors`: `MlleError`, an exception with `domain`, `code`,
  `message` and an optional `cause`; `MlleError.formatted` builds one from
  a printf-style format.
- `semlakit.protocol`: `CommandId`, `MessageForm`, `ProtocolErrorId`,
  `GrammarError`, `CommandInfo`, `Command`, `command_info`,
  `lookup_command`, `tokenize` and `parse_command`. Malformed lines raise
  `CommandParseError`, whose `error` is a `GrammarError`.
- `semlakit.secure_channel`: `Mode`, `get_rsa`, `get_public_key`,
  `generate_x509`, `create_context`, `write_message`, `read_message`,
  `ssl_error_string`; failures raise `ChannelError`.
- `semlakit.io`: `read_file`, the `send_simple_form`, `send_number_form`,
  `send_length_form`, `send_string`, `send_number_and_length_form` and
  `send_error` helpers, and `open_log`, which opens a debug log file named
  by an environment variable.
- `semlakit.commands`: `read_command` reads and parses one complete
  command, collecting its data part, and raises `MlleError` on failure;
  `extract_data` takes the data part out of a received message.
- `semlakit.decrypt`: `CryptoContext(basedir="", key=None, *, demask=True)`
  with `decrypt`, `demask_key` and `store_keymask`; `generate_key`;
  `DecryptionError`. Without a key a random one is generated; with
  `demask=False` no key masks are used.
- `semlakit.encrypt`: `encrypt(context, rel_file_path, infile, outfile)`,
  which returns the number of bytes written, `mask_key` and
  `EncryptionError`.
- `semlakit.license`: `License` with `checkout_feature` and
  `checkin_feature`; it is also a context manager.

Encrypting a small library and reading a file back:

```python
from pathlib import Path

from semlakit.decrypt import CryptoContext, generate_key
from semlakit.encrypt import encrypt

key = generate_key()
source = Path("MyLib")
target = Path("MyLibEncrypted")
target.mkdir()

writer = CryptoContext(str(target), key)
for name in ("package.mo", "Model.mo"):  # package.mo first
    with open(source / name, "rb") as infile, open(target / (name + "c"), "wb") as outfile:
        encrypt(writer, name, infile, outfile)

reader = CryptoContext(str(target), key)
cleartext = reader.decrypt("Model.moc", (target / "Model.moc").read_bytes())
```

Parsing a protocol line:

```python
from semlakit.protocol import CommandId, parse_command

command = parse_command("ERROR 4 12\n")
assert command.id is CommandId.ERROR
assert (command.number, command.length) == (4, 12)
```

## What it does not do

- There is no license server or client program: the package gives the
  protocol parser, message framing and TLS helpers, but nothing that runs a
  licensing session end to end.
- `License` is a stand-in: it grants only the feature
  `test_licensed_feature` and raises `LicenseError` for every other one;
  checkin always succeeds.
- There is no command to create a key; use `generate_key` as shown above.

## Running the tests

```
pip install semlakit[test]
pytest
```