"""
Program interface definition (IDL) loader.

The on-chain program publishes an Anchor-style interface definition:
instruction names, their ordered account lists with mutability and signer
flags, argument types, account layouts, and custom error codes. This
module validates that document and turns it into borsh layouts.

Discriminators (Anchor convention):
    instruction = sha256("global:" + snake_case(name))[:8]
    account     = sha256("account:" + Name)[:8]

The bundled ``idl.json`` matches the deployed crowdfunding program. If the
deployed program drifts from it, the drift shows up as decode failures,
never as silently wrong records.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass
from functools import cached_property
from importlib import resources
from pathlib import Path
from typing import Any, cast

import jsonschema  # type: ignore[import-untyped]
from borsh_construct import I64, U8, U16, U32, U64, Bool, CStruct, String
from solders.pubkey import Pubkey

from crowdfund.errors import InterfaceError

DISCRIMINATOR_SIZE = 8

_BORSH_TYPES = {
    "bool": Bool,
    "u8": U8,
    "u16": U16,
    "u32": U32,
    "u64": U64,
    "i64": I64,
    "string": String,
    "publicKey": U8[32],
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

_SCHEMA: dict[str, Any] | None = None


def _load_schema() -> dict[str, Any]:
    global _SCHEMA
    if _SCHEMA is None:
        with resources.files("crowdfund").joinpath("schemas/idl.schema.json").open(
            "r", encoding="utf-8"
        ) as f:
            _SCHEMA = cast(dict[str, Any], json.load(f))
    return _SCHEMA


def snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def instruction_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"global:{snake_case(name)}".encode()).digest()[:DISCRIMINATOR_SIZE]


def account_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"account:{name}".encode()).digest()[:DISCRIMINATOR_SIZE]


# =========================================================================
# Definitions
# =========================================================================


@dataclass(frozen=True)
class FieldDef:
    name: str
    type: str


@dataclass(frozen=True)
class AccountRole:
    """One slot in an instruction's ordered account list."""

    name: str
    is_mut: bool
    is_signer: bool


def _layout(fields: tuple[FieldDef, ...]) -> CStruct:
    return CStruct(*(f.name / _BORSH_TYPES[f.type] for f in fields))


@dataclass(frozen=True)
class InstructionDef:
    name: str
    accounts: tuple[AccountRole, ...]
    args: tuple[FieldDef, ...]

    @property
    def discriminator(self) -> bytes:
        return instruction_discriminator(self.name)

    @cached_property
    def layout(self) -> CStruct:
        return _layout(self.args)

    def role(self, name: str) -> AccountRole | None:
        for role in self.accounts:
            if role.name == name:
                return role
        return None


@dataclass(frozen=True)
class AccountDef:
    name: str
    fields: tuple[FieldDef, ...]

    @property
    def discriminator(self) -> bytes:
        return account_discriminator(self.name)

    @cached_property
    def layout(self) -> CStruct:
        return _layout(self.fields)


@dataclass(frozen=True)
class ProgramError:
    code: int
    name: str
    msg: str | None = None


@dataclass(frozen=True)
class ProgramInterface:
    """A validated interface definition.

    Attributes:
        name: Program name.
        version: Interface version string.
        program_id: Address the program is deployed at.
        instructions: Instruction definitions keyed by name.
        accounts: Account layouts keyed by name.
        errors: Custom program errors keyed by code.
    """

    name: str
    version: str
    program_id: Pubkey
    instructions: dict[str, InstructionDef]
    accounts: dict[str, AccountDef]
    errors: dict[int, ProgramError]

    def instruction(self, name: str) -> InstructionDef:
        try:
            return self.instructions[name]
        except KeyError:
            raise InterfaceError(
                f"interface {self.name!r} has no instruction {name!r}",
                details={"instruction": name},
            ) from None

    def account(self, name: str) -> AccountDef:
        try:
            return self.accounts[name]
        except KeyError:
            raise InterfaceError(
                f"interface {self.name!r} has no account type {name!r}",
                details={"account": name},
            ) from None

    def error(self, code: int) -> ProgramError | None:
        return self.errors.get(code)

    def with_program_id(self, program_id: Pubkey) -> ProgramInterface:
        """Same interface, deployed at a different address."""
        return ProgramInterface(
            name=self.name,
            version=self.version,
            program_id=program_id,
            instructions=self.instructions,
            accounts=self.accounts,
            errors=self.errors,
        )


# =========================================================================
# Loading
# =========================================================================


def parse_interface(document: dict[str, Any]) -> ProgramInterface:
    """Validate an interface document and build a ProgramInterface.

    Raises:
        InterfaceError: If the document does not match the IDL schema or
            its program address is not a valid public key.
    """
    try:
        jsonschema.validate(instance=document, schema=_load_schema())
    except jsonschema.ValidationError as exc:
        path = "/".join(str(p) for p in exc.absolute_path) or "<root>"
        raise InterfaceError(
            f"invalid interface definition at {path}: {exc.message}",
            details={"path": path},
        ) from exc

    address = document["metadata"]["address"]
    try:
        program_id = Pubkey.from_string(address)
    except ValueError as exc:
        raise InterfaceError(
            f"interface program address is not a public key: {address!r}",
            details={"address": address},
        ) from exc

    instructions = {
        ix["name"]: InstructionDef(
            name=ix["name"],
            accounts=tuple(
                AccountRole(name=a["name"], is_mut=a["isMut"], is_signer=a["isSigner"])
                for a in ix["accounts"]
            ),
            args=tuple(FieldDef(name=f["name"], type=f["type"]) for f in ix["args"]),
        )
        for ix in document["instructions"]
    }
    accounts = {
        acc["name"]: AccountDef(
            name=acc["name"],
            fields=tuple(
                FieldDef(name=f["name"], type=f["type"]) for f in acc["type"]["fields"]
            ),
        )
        for acc in document["accounts"]
    }
    errors = {
        err["code"]: ProgramError(code=err["code"], name=err["name"], msg=err.get("msg"))
        for err in document.get("errors", [])
    }

    return ProgramInterface(
        name=document["name"],
        version=document["version"],
        program_id=program_id,
        instructions=instructions,
        accounts=accounts,
        errors=errors,
    )


def load_interface(path: str | Path | None = None) -> ProgramInterface:
    """Load an interface definition from ``path``, or the bundled one."""
    try:
        if path is None:
            text = resources.files("crowdfund").joinpath("idl.json").read_text(encoding="utf-8")
        else:
            text = Path(path).read_text(encoding="utf-8")
        document = json.loads(text)
    except (OSError, json.JSONDecodeError) as exc:
        raise InterfaceError(
            f"cannot read interface definition: {exc}",
            details={"path": str(path) if path is not None else "<bundled>"},
        ) from exc
    if not isinstance(document, dict):
        raise InterfaceError("interface definition must be a JSON object")
    return parse_interface(document)
