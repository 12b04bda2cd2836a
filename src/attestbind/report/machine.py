"""Operator-supplied machine definition (vm-config.toml)."""
from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, PrivateAttr, field_validator

IDBLOCK_ID_BYTES = 16


class MachineDefinition(BaseModel):
    model_config = ConfigDict(extra="allow")

    host_cpu_family: str
    vcpu_count: Optional[int] = None
    ovmf_file: Optional[str] = None
    kernel_file: Optional[str] = None
    initrd_file: Optional[str] = None
    kernel_cmdline: str = ""
    guest_policy: Optional[Any] = None
    guest_features: Optional[Any] = None
    platform_info: Optional[Any] = None
    min_commited_tcb: Optional[Dict[str, Any]] = None
    family_id: Optional[str] = None
    image_id: Optional[str] = None

    _path: Optional[Path] = PrivateAttr(default=None)

    @field_validator("host_cpu_family")
    @classmethod
    def _cpu_family_present(cls, v: str) -> str:
        v = v.strip().strip('"')
        if not v:
            raise ValueError("host_cpu_family must not be empty")
        return v

    @field_validator("family_id", "image_id")
    @classmethod
    def _id_block_hex(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        try:
            raw = bytes.fromhex(v)
        except ValueError as e:
            raise ValueError("must be hex encoded") from e
        if len(raw) != IDBLOCK_ID_BYTES:
            raise ValueError(f"must be {IDBLOCK_ID_BYTES} bytes, got {len(raw)}")
        return v.lower()

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def processor_model(self) -> str:
        """Lowercased product name as snpguest expects it (milan, genoa, ...)."""
        return self.host_cpu_family.lower()


def load_machine_definition(path: str | Path) -> MachineDefinition:
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"invalid VM config file: {p}")
    with open(p, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"{p}: {e}") from e
    md = MachineDefinition(**data)
    md._path = p
    return md
