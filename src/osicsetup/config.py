# config.py
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from string import Template
from typing import Dict

# Defaults, each overridable through the environment (and then through CLI options).
PDK = os.environ.get("IIC_PDK", "sky130A")
PDK_VARIANTS = os.environ.get("IIC_PDK_VARIANTS", "A")   # A=sky130A, B=sky130B, all=both
STD_CELL_LIBRARY = os.environ.get("IIC_STD_CELL_LIBRARY", "sky130_fd_sc_hd")
NGSPICE_VERSION = os.environ.get("IIC_NGSPICE_VERSION", "43")
INSTALL_ROOT = os.environ.get("IIC_INSTALL_ROOT", "/usr/local")


@dataclass(frozen=True)
class EnvironmentConfig:
    """
    Everything the setup steps need to know about the target layout.

    Set once at startup and passed explicitly to every step; never mutated.
    Use `with_overrides()` to derive a changed copy.
    """
    home: Path
    pdk_root: Path
    src_dir: Path
    openlane_dir: Path
    script_dir: Path
    pdk: str = PDK
    pdk_variants: str = PDK_VARIANTS
    std_cell_library: str = STD_CELL_LIBRARY
    ngspice_version: str = NGSPICE_VERSION
    install_root: Path = Path(INSTALL_ROOT)

    @classmethod
    def from_env(cls, **overrides) -> "EnvironmentConfig":
        home = Path(overrides.pop("home", None) or os.environ.get("HOME") or Path.home())

        def _path(key: str, env_name: str, default: Path) -> Path:
            value = overrides.pop(key, None) or os.environ.get(env_name)
            return Path(value).expanduser().resolve() if value else default

        cfg = cls(
            home=home,
            pdk_root=_path("pdk_root", "IIC_PDK_ROOT", home / "pdk"),
            src_dir=_path("src_dir", "IIC_SRC_DIR", home / "src"),
            openlane_dir=_path("openlane_dir", "IIC_OPENLANE_DIR", home / "OpenLane"),
            script_dir=_path("script_dir", "IIC_SCRIPT_DIR", Path.cwd()),
        )
        # remaining overrides are plain fields; None means "keep default"
        return cfg.with_overrides(**{k: v for k, v in overrides.items() if v is not None})

    def with_overrides(self, **changes) -> "EnvironmentConfig":
        for key in ("home", "pdk_root", "src_dir", "openlane_dir", "script_dir", "install_root"):
            if key in changes and changes[key] is not None:
                changes[key] = Path(changes[key]).expanduser().resolve()
        return replace(self, **changes)

    @property
    def pdk_dir(self) -> Path:
        return self.pdk_root / self.pdk

    @property
    def open_pdk_args(self) -> str:
        return f"--with-sky130-variants={self.pdk_variants}"

    def as_env(self) -> Dict[str, str]:
        """Variables exported to every subprocess (and into iic-init.sh)."""
        return {
            "PDK_ROOT": str(self.pdk_root),
            "PDK": self.pdk,
            "STD_CELL_LIBRARY": self.std_cell_library,
            "OPEN_PDK_ARGS": self.open_pdk_args,
        }

    def variables(self) -> Dict[str, str]:
        env = self.as_env()
        env.update(
            {
                "HOME": str(self.home),
                "SRC_DIR": str(self.src_dir),
                "OPENLANE_DIR": str(self.openlane_dir),
                "SCRIPT_DIR": str(self.script_dir),
                "NGSPICE_VERSION": self.ngspice_version,
                "INSTALL_ROOT": str(self.install_root),
            }
        )
        return env

    def expand(self, text: str, **extra: str) -> str:
        """Expand $VARS against this config (never against os.environ)."""
        mapping = self.variables()
        mapping.update(extra)
        return Template(text).safe_substitute(mapping)
