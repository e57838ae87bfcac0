# catalog.py
# What gets installed. Everything here is data; the routines that act on it
# live in packages.py, tools.py, patcher.py and initscripts.py.
from __future__ import annotations

from typing import List

from .config import EnvironmentConfig
from .dsl import (
    archive_tool,
    binary,
    catalog,
    file_exists,
    git_tool,
    make_install,
    python_module,
    sh,
    tool,
    when_release,
)
from .model import PatchRule, ToolSpec
from .patcher import append_line, comment_out, replace_text


# ---------------------------------------------------------------------
# APT
# ---------------------------------------------------------------------

CONFLICTING_PACKAGES = [
    "docker.io",
    "docker-doc",
    "docker-compose",
    "docker-compose-v2",
    "podman-docker",
    "containerd",
    "runc",
]

DOCKER_PREREQUISITES = ["ca-certificates", "curl"]
DOCKER_GPG_URL = "https://download.docker.com/linux/ubuntu/gpg"
DOCKER_REPO_URL = "https://download.docker.com/linux/ubuntu"
DOCKER_KEYRING = "/etc/apt/keyrings/docker.asc"
DOCKER_SOURCES_LIST = "/etc/apt/sources.list.d/docker.list"

# ngspice is built from source, the LTS package is too old
APT_PACKAGES = [
    "docker-ce", "docker-ce-cli", "containerd.io", "docker-buildx-plugin", "docker-compose-plugin",
    "git", "klayout", "iverilog", "gtkwave", "ghdl",
    "verilator", "yosys", "xdot", "python3", "python3-pip", "python3.12-venv", "gettext", "python3-setuptools",
    "build-essential", "automake", "autoconf", "gawk", "m4", "flex", "bison",
    "octave", "octave-signal", "octave-communications", "octave-control",
    "xterm", "csh", "tcsh", "htop", "mc", "gedit", "vim", "vim-gtk3", "kdiff3",
    "tcl8.6", "tcl8.6-dev", "tk8.6", "tk8.6-dev",
    "graphicsmagick", "ghostscript", "mesa-common-dev", "libglu1-mesa-dev",
    "libxpm-dev", "libx11-6", "libx11-dev", "libxrender1", "libxrender-dev",
    "libxcb1", "libx11-xcb-dev", "libcairo2", "libcairo2-dev",
    "libxpm4", "libgtk-3-dev",
]

# checked after the apt phase; failures are reported, not fatal
PACKAGE_PROBES = ["docker", "git", "klayout", "iverilog", "gtkwave", "yosys", "flex", "bison"]


# ---------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------

CONFIGURE = sh("Configure", './configure --prefix="$INSTALL_ROOT"')

OPENLANE = git_tool(
    "openlane",
    "https://github.com/The-OpenROAD-Project/OpenLane.git",
    "$OPENLANE_DIR",
    # -E: PDK_ROOT/PDK/OPEN_PDK_ARGS must survive sudo
    build=[sh("Pull OpenLane container", "sudo -E make pull-openlane", network=True)],
    probe=file_exists("$CHECKOUT/flow.tcl"),
    fatal=True,
)

PDK = tool(
    "pdk",
    None,
    "$OPENLANE_DIR",
    source_kind="none",
    build=[
        # a stale skywater-pdk checkout makes the PDK build's `git clone` fail
        sh("Remove stale skywater-pdk", 'rm -rf "$PDK_ROOT/skywater-pdk"'),
        sh("Create/update PDK", "sudo -E make pdk", network=True),
    ],
    probe=file_exists("$PDK_ROOT/$PDK/libs.tech/magic/$PDK.magicrc"),
    fatal=True,
    needs=["openlane"],
)

XSCHEM = git_tool(
    "xschem",
    "https://github.com/StefanSchippers/xschem.git",
    "$SRC_DIR/xschem",
    install=[sh("Install build dependencies", "sudo apt build-dep -y xschem", network=True), CONFIGURE],
    build=make_install(),
    probe=binary("xschem"),
)

GAW = git_tool(
    "gaw",
    "https://github.com/StefanSchippers/xschem-gaw.git",
    "$SRC_DIR/xschem-gaw",
    install=[sh("Generate build files", "aclocal && automake --add-missing && autoconf"), CONFIGURE],
    build=make_install(),
    patches=[
        when_release(
            "20.04*",
            "po/Makefile",
            replace_text(r"GETTEXT_MACRO_VERSION = 0\.20\b", "GETTEXT_MACRO_VERSION = 0.19"),
        ),
    ],
    probe=binary("gaw"),
)

XSCHEM_SKY130 = git_tool(
    "xschem_sky130",
    "https://github.com/StefanSchippers/xschem_sky130.git",
    "$SRC_DIR/xschem_sky130",
    artifacts=[
        ("xschem_verilog_import/make_sky130_sch_from_verilog.awk", "$SCRIPT_DIR/iic-v2sch.awk"),
    ],
    probe=file_exists("$SCRIPT_DIR/iic-v2sch.awk"),
)

MAGIC = git_tool(
    "magic",
    "https://github.com/RTimothyEdwards/magic.git",
    "$SRC_DIR/magic",
    ref="magic-8.3",
    install=[CONFIGURE],
    build=make_install(),
    probe=binary("magic"),
)

NETGEN = git_tool(
    "netgen",
    "https://github.com/RTimothyEdwards/netgen.git",
    "$SRC_DIR/netgen",
    ref="netgen-1.5",
    install=[CONFIGURE],
    build=make_install(),
    probe=binary("netgen"),
)

NGSPICE = archive_tool(
    "ngspice",
    "https://sourceforge.net/projects/ngspice/files/ng-spice-rework/old-releases/"
    "$NGSPICE_VERSION/ngspice-$NGSPICE_VERSION.tar.gz",
    "$SRC_DIR/ngspice-$NGSPICE_VERSION",
    install=[
        sh("Install build dependencies", "sudo apt install -y libxaw7-dev libfftw3-dev libreadline-dev", network=True),
        CONFIGURE,
    ],
    build=make_install(),
    probe=binary("ngspice"),
)

SPYCI = git_tool(
    "spyci",
    "https://github.com/gmagno/spyci.git",
    "$SRC_DIR/spyci",
    build=[sh("Install", "sudo python3 setup.py install")],
    probe=python_module("spyci"),
)


def default_tools() -> List[ToolSpec]:
    return catalog(OPENLANE, PDK, XSCHEM, GAW, XSCHEM_SKY130, MAGIC, NETGEN, NGSPICE, SPYCI)


# ---------------------------------------------------------------------
# Configuration patches
# ---------------------------------------------------------------------

BINDKEYS_FILE = "iic-magic-bindkeys"
MODEL_REDUCER = "iic-spice-model-red.py"
MODEL_LIBRARY = "sky130.lib.spice"
CORNERS = ("tt", "ss", "ff")


def magicrc_rules(config: EnvironmentConfig) -> List[PatchRule]:
    return [
        append_line("# Custom bindkeys for IIC"),
        append_line(f"source {config.script_dir / BINDKEYS_FILE}"),
    ]


def xschemrc_rules(config: EnvironmentConfig) -> List[PatchRule]:
    # $env(...) is resolved by xschem at its own startup, keep it literal
    return [
        comment_out(
            r"^set SKYWATER_MODELS",
            replacement="# set SKYWATER_MODELS",
            then_append="set SKYWATER_MODELS $env(PDK_ROOT)/$env(PDK)/libs.tech/ngspice",
        ),
        comment_out(
            r"^set SKYWATER_STDCELLS",
            replacement="# set SKYWATER_STD_CELLS",
            then_append=(
                "set SKYWATER_STDCELLS $env(PDK_ROOT)/$env(PDK)/libs.ref/"
                f"{config.std_cell_library}/spice"
            ),
        ),
    ]
