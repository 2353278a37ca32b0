import struct

import pytest

from smallwares.gpt2_tokenizer import TOKEN_MAGIC, Tokenizer, TokenizerError


def _serialize(vocab, merges, magic=TOKEN_MAGIC):
    out = struct.pack("<III", magic, len(vocab), len(merges))
    for token in vocab:
        out += struct.pack("<H", len(token)) + token
    for a, b, result in merges:
        out += struct.pack("<III", a, b, result)
    return out


VOCAB = [b"a", b"b", b"c", b"ab", b"bc", b"abc"]


def test_magic_reads_as_little_endian_bytes():
    data = _serialize([b"a"], [])
    assert data[:4] == b"NKOT"
    assert Tokenizer.from_bytes(data).vocab == [b"a"]


def test_from_bytes_round_trip():
    merges = [(0, 1, 3), (3, 2, 5)]
    tok = Tokenizer.from_bytes(_serialize(VOCAB, merges))
    assert tok.vocab == VOCAB
    assert tok.merges == merges


def test_bad_magic_raises():
    with pytest.raises(TokenizerError):
        Tokenizer.from_bytes(_serialize(VOCAB, [], magic=0x12345678))


def test_truncated_data_raises():
    data = _serialize(VOCAB, [(0, 1, 3)])
    with pytest.raises(TokenizerError):
        Tokenizer.from_bytes(data[:-2])
    with pytest.raises(TokenizerError):
        Tokenizer.from_bytes(data[:5])


def test_encode_applies_merges_in_sequence():
    tok = Tokenizer(VOCAB, [(0, 1, 3), (3, 2, 5)])
    assert tok.encode(b"abc") == [5]


def test_encode_prefers_lower_ranked_merge():
    tok = Tokenizer(VOCAB, [(1, 2, 4), (0, 1, 3)])
    assert tok.encode(b"abc") == [0, 4]


def test_encode_unknown_byte_becomes_zero():
    tok = Tokenizer(VOCAB, [])
    assert tok.encode(b"axc") == [0, 0, 2]


def test_encode_empty_and_limit():
    tok = Tokenizer(VOCAB, [])
    assert tok.encode(b"") == []
    assert tok.encode(b"abcabc", 4) == [0, 1, 2, 0]


def test_decode_joins_back_to_text():
    tok = Tokenizer(VOCAB, [(0, 1, 3), (1, 2, 4)])
    ids = tok.encode(b"abcab")
    assert b"".join(tok.decode(i) for i in ids) == b"abcab"


def test_decode_out_of_range_is_empty():
    tok = Tokenizer(VOCAB, [])
    assert tok.decode(len(VOCAB)) == b""
    assert tok.token_bytes(-1) == b""


def test_find_token_returns_first_match():
    tok = Tokenizer([b"x", b"y", b"x"], [])
    assert tok.find_token(b"x") == 0
    assert tok.find_token(b"z") is None


def test_load_from_file(tmp_path):
    path = tmp_path / "tokenizer.bin"
    path.write_bytes(_serialize(VOCAB, [(0, 1, 3)]))
    tok = Tokenizer.load(path)
    assert tok.encode(b"ab") == [3]
    assert tok.vocab_size == len(VOCAB)