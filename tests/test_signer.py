from __future__ import annotations

import hashlib
import hmac

from webapp.auth.signer import sign, verify


def test_sign_is_hex_hmac_sha256_over_pipe_joined_fields() -> None:
    expected = hmac.new(b"k", b"AT1|1700000000000|RT1", hashlib.sha256).hexdigest()
    assert sign("k", ["AT1", "1700000000000", "RT1"]) == expected
    assert expected == expected.lower()
    assert len(expected) == 64


def test_sign_is_deterministic_and_keyed() -> None:
    fields = ("a", "b", "c")
    assert sign("k1", fields) == sign("k1", fields)
    assert sign("k1", fields) != sign("k2", fields)


def test_sign_depends_on_field_order() -> None:
    assert sign("k", ["a", "b"]) != sign("k", ["b", "a"])


def test_sign_never_raises_on_empty_fields() -> None:
    assert len(sign("k", [])) == 64
    assert len(sign("k", ["", "", ""])) == 64


def test_verify_accepts_matching_tag() -> None:
    tag = sign("k", ["x", "y"])
    assert verify("k", ["x", "y"], tag) is True


def test_verify_rejects_wrong_or_junk_tags() -> None:
    tag = sign("k", ["x", "y"])
    assert verify("k", ["x", "z"], tag) is False
    assert verify("other", ["x", "y"], tag) is False
    assert verify("k", ["x", "y"], tag.upper()) is False
    assert verify("k", ["x", "y"], "") is False
    assert verify("k", ["x", "y"], None) is False
    # Non-ASCII input must not blow up compare_digest.
    assert verify("k", ["x", "y"], "é" * 64) is False
