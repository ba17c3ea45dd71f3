from lockfilter.errors import (
    ErrorCode,
    LockfileError,
    LockfilterError,
    MalformedEntryError,
    PolicyError,
)


def test_error_string_includes_hint_and_context() -> None:
    err = PolicyError(
        "Interception strategy does not match the configured strategy.",
        hint="Configure a single strategy per build.",
        context={"operation": "fetch_package", "empty": ""},
    )

    text = str(err)

    assert "Hint: Configure a single strategy per build." in text
    assert "operation: fetch_package" in text
    assert "empty" not in text
    assert err.code == "E_POLICY"


def test_to_dict_is_machine_readable() -> None:
    payload = LockfileError("Lock document does not exist.", context={"path": "Cargo.lock"}).to_dict()

    assert payload["code"] == ErrorCode.LOCKFILE.value
    assert payload["context"] == {"path": "Cargo.lock"}
    assert "hint" not in payload


def test_malformed_entry_is_a_lockfile_error() -> None:
    err = MalformedEntryError("bad", index=3, context={"field": "name"})

    assert isinstance(err, LockfileError)
    assert isinstance(err, LockfilterError)
    assert err.index == 3
    assert err.context == {"entry_index": "3", "field": "name"}
